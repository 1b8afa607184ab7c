"""
Kubernetes Module Functions
Applies raw YAML manifests to the cluster through the Kubernetes provider
"""

import os
import tempfile

import pulumi
import pulumi_kubernetes as k8s
import yaml
from typing import Optional, Union

from modules.utils import import_transformation


def create_kubernetes_provider(name: str, kubeconfig: 'pulumi.Output[str]') -> k8s.Provider:
    """
    Create Kubernetes provider for the EKS cluster

    Args:
        name: Provider name prefix
        kubeconfig: Kubeconfig document for the cluster

    Returns:
        Kubernetes provider instance
    """
    return k8s.Provider(
        f"{name}-k8s-provider",
        kubeconfig=kubeconfig
    )


def sync_kubernetes_manifest(name: str, manifest: Union[str, bytes], import_id: Optional[str] = None,
                             opts: Optional[pulumi.ResourceOptions] = None) -> k8s.yaml.ConfigFile:
    """
    Apply a YAML manifest through a ConfigFile resource

    The manifest is written to a scratch file because ConfigFile reads from a
    path. The file is removed once the resource has been declared, whether or
    not that succeeded.

    Args:
        name: Pulumi resource name
        manifest: YAML manifest, may contain multiple documents
        import_id: Kubernetes id ("namespace/name") of an existing object to adopt
        opts: Resource options

    Returns:
        ConfigFile resource
    """
    if isinstance(manifest, str):
        manifest = manifest.encode("utf-8")

    fd, path = tempfile.mkstemp(prefix=f"{name}-", suffix=".yaml")
    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(manifest)
        except OSError as e:
            pulumi.log.error(f"error writing manifest to file {path}: {e}")
            raise

        transformations = []
        transform = import_transformation(import_id)
        if transform:
            transformations.append(transform)

        try:
            return k8s.yaml.ConfigFile(
                name,
                file=path,
                transformations=transformations,
                opts=opts
            )
        except Exception as e:
            pulumi.log.error(f"error getting pulumi configfile from manifest file: {e}")
            raise
    finally:
        try:
            os.remove(path)
        except OSError as e:
            pulumi.log.error(f"error deleting manifest file {path}: {e}")


def create_custom_resource_from_manifest(name: str, manifest: Union[str, bytes],
                                         opts: Optional[pulumi.ResourceOptions] = None) -> k8s.apiextensions.CustomResource:
    """
    Declare a CustomResource from a single-document YAML manifest

    Args:
        name: Pulumi resource name
        manifest: YAML manifest of one custom resource
        opts: Resource options

    Returns:
        CustomResource instance
    """
    try:
        obj = yaml.safe_load(manifest)
    except yaml.YAMLError as e:
        pulumi.log.error(f"error unmarshalling manifest yaml to custom resource args: {e}")
        raise

    # everything besides the standard fields (spec, data, ...) passes through
    extra = {k: v for k, v in obj.items() if k not in ("apiVersion", "kind", "metadata")}

    return k8s.apiextensions.CustomResource(
        name,
        api_version=obj["apiVersion"],
        kind=obj["kind"],
        metadata=obj.get("metadata"),
        opts=opts,
        **extra
    )
