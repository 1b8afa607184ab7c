"""
Argo CD Application manifests

ArgocdApplication mirrors the Application CRD closely enough to load a
template, override a few fields and write it back. Optional fields that are
empty are left out of the output, the same way the upstream types omit them.
https://github.com/argoproj/argo-cd/blob/master/pkg/apis/application/v1alpha1/types.go
"""

import dataclasses
import os
import typing

import pulumi
import yaml
from typing import Any, Dict, List, Optional, Union

from modules.kubernetes.functions import sync_kubernetes_manifest

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
PLATFORM_APPLICATION_TEMPLATE = os.path.join(TEMPLATES_DIR, "platform-application.yaml")


def _key(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _is_empty(value: Any) -> bool:
    return value is None or value is False or value == 0 or value == "" or value == [] or value == {}


class ManifestObject:
    """Dict conversion for the Application dataclasses"""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        data = data or {}
        hints = typing.get_type_hints(cls)
        kwargs = {}
        for f in dataclasses.fields(cls):
            key = f.metadata.get("key", _key(f.name))
            if key not in data or data[key] is None:
                continue
            kwargs[f.name] = _convert_in(hints[f.name], data[key])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in dataclasses.fields(self):
            key = f.metadata.get("key", _key(f.name))
            value = _convert_out(getattr(self, f.name))
            if _is_empty(value) and not f.metadata.get("required"):
                continue
            out[key] = value
        return out


def _convert_in(hint: Any, value: Any) -> Any:
    if isinstance(hint, type) and issubclass(hint, ManifestObject):
        return hint.from_dict(value)
    if typing.get_origin(hint) is list:
        (item_hint,) = typing.get_args(hint)
        return [_convert_in(item_hint, item) for item in value]
    return value


def _convert_out(value: Any) -> Any:
    if isinstance(value, ManifestObject):
        return value.to_dict()
    if isinstance(value, list):
        return [_convert_out(item) for item in value]
    return value


@dataclasses.dataclass
class HelmParameter(ManifestObject):
    name: str = ""
    value: str = ""
    force_string: bool = False


@dataclasses.dataclass
class HelmFileParameter(ManifestObject):
    name: str = dataclasses.field(default="", metadata={"required": True})
    path: str = dataclasses.field(default="", metadata={"required": True})


@dataclasses.dataclass
class ApplicationSourceHelm(ManifestObject):
    value_files: List[str] = dataclasses.field(default_factory=list)
    parameters: List[HelmParameter] = dataclasses.field(default_factory=list)
    release_name: str = ""
    values: str = ""
    file_parameters: List[HelmFileParameter] = dataclasses.field(default_factory=list)
    version: str = ""
    pass_credentials: bool = False
    ignore_missing_value_files: bool = False
    skip_crds: bool = False


@dataclasses.dataclass
class ApplicationSourceKustomize(ManifestObject):
    name_prefix: str = ""
    name_suffix: str = ""
    images: List[str] = dataclasses.field(default_factory=list)
    common_labels: Dict[str, str] = dataclasses.field(default_factory=dict)
    version: str = ""
    common_annotations: Dict[str, str] = dataclasses.field(default_factory=dict)
    force_common_labels: bool = False
    force_common_annotations: bool = False


@dataclasses.dataclass
class JsonnetVar(ManifestObject):
    name: str = dataclasses.field(default="", metadata={"required": True})
    value: str = dataclasses.field(default="", metadata={"required": True})
    code: bool = False


@dataclasses.dataclass
class ApplicationSourceJsonnet(ManifestObject):
    ext_vars: List[JsonnetVar] = dataclasses.field(default_factory=list)
    tlas: List[JsonnetVar] = dataclasses.field(default_factory=list)
    libs: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ApplicationSourceDirectory(ManifestObject):
    recurse: bool = False
    jsonnet: ApplicationSourceJsonnet = dataclasses.field(default_factory=ApplicationSourceJsonnet)
    exclude: str = ""
    include: str = ""


@dataclasses.dataclass
class EnvEntry(ManifestObject):
    name: str = dataclasses.field(default="", metadata={"required": True})
    value: str = dataclasses.field(default="", metadata={"required": True})


@dataclasses.dataclass
class ApplicationSourcePlugin(ManifestObject):
    name: str = ""
    env: List[EnvEntry] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ApplicationSource(ManifestObject):
    repo_url: str = dataclasses.field(default="", metadata={"key": "repoURL", "required": True})
    path: str = ""
    target_revision: str = ""
    helm: ApplicationSourceHelm = dataclasses.field(default_factory=ApplicationSourceHelm)
    kustomize: ApplicationSourceKustomize = dataclasses.field(default_factory=ApplicationSourceKustomize)
    directory: ApplicationSourceDirectory = dataclasses.field(default_factory=ApplicationSourceDirectory)
    plugin: ApplicationSourcePlugin = dataclasses.field(default_factory=ApplicationSourcePlugin)
    chart: str = ""


@dataclasses.dataclass
class ApplicationDestination(ManifestObject):
    server: str = ""
    namespace: str = ""
    name: str = ""


@dataclasses.dataclass
class SyncPolicyAutomated(ManifestObject):
    prune: bool = False
    self_heal: bool = False
    allow_empty: bool = False


@dataclasses.dataclass
class Backoff(ManifestObject):
    duration: str = ""
    factor: int = 0
    max_duration: str = ""


@dataclasses.dataclass
class RetryStrategy(ManifestObject):
    limit: int = 0
    backoff: Backoff = dataclasses.field(default_factory=Backoff)


@dataclasses.dataclass
class SyncPolicy(ManifestObject):
    automated: SyncPolicyAutomated = dataclasses.field(default_factory=SyncPolicyAutomated)
    retry: RetryStrategy = dataclasses.field(default_factory=RetryStrategy)
    sync_options: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ResourceIgnoreDifferences(ManifestObject):
    group: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""
    json_pointers: List[str] = dataclasses.field(default_factory=list)
    jq_path_expressions: List[str] = dataclasses.field(default_factory=list)
    managed_fields_managers: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ApplicationSpec(ManifestObject):
    source: ApplicationSource = dataclasses.field(default_factory=ApplicationSource, metadata={"required": True})
    destination: ApplicationDestination = dataclasses.field(
        default_factory=ApplicationDestination, metadata={"required": True}
    )
    project: str = dataclasses.field(default="", metadata={"required": True})
    sync_policy: SyncPolicy = dataclasses.field(default_factory=SyncPolicy)
    ignore_differences: List[ResourceIgnoreDifferences] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ArgocdApplication(ManifestObject):
    api_version: str = dataclasses.field(default="argoproj.io/v1alpha1", metadata={"required": True})
    kind: str = dataclasses.field(default="Application", metadata={"required": True})
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict, metadata={"required": True})
    spec: ApplicationSpec = dataclasses.field(default_factory=ApplicationSpec, metadata={"required": True})

    @classmethod
    def from_yaml(cls, manifest: Union[str, bytes]) -> "ArgocdApplication":
        try:
            return cls.from_dict(yaml.safe_load(manifest))
        except yaml.YAMLError as e:
            pulumi.log.error(f"error unmarshalling application yaml: {e}")
            raise

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def load_application_template(path: str = PLATFORM_APPLICATION_TEMPLATE) -> bytes:
    """Read a packaged Application template"""
    with open(path, "rb") as f:
        return f.read()


def materialize_application(template: Union[str, bytes],
                            sync_policy: Union[SyncPolicy, Dict[str, Any], None] = None,
                            target_revision: Optional[str] = None,
                            values: Optional[str] = None) -> ArgocdApplication:
    """
    Load an Application template and apply stack overrides

    Only the sync policy, target revision and Helm values can be overridden.
    An override that is None or empty leaves the template value in place.

    Args:
        template: Application manifest YAML
        sync_policy: Sync policy to set on the application
        target_revision: Git revision or chart version to track
        values: Inline Helm values

    Returns:
        Application with the overrides applied
    """
    application = ArgocdApplication.from_yaml(template)

    if isinstance(sync_policy, dict):
        sync_policy = SyncPolicy.from_dict(sync_policy)
    if sync_policy is not None and sync_policy.to_dict():
        application.spec.sync_policy = sync_policy
    if target_revision:
        application.spec.source.target_revision = target_revision
    if values:
        application.spec.source.helm.values = values

    return application


def sync_argocd_application(name: str, application: ArgocdApplication,
                            opts: Optional[pulumi.ResourceOptions] = None) -> pulumi.Resource:
    """
    Apply an Application manifest to the cluster

    Args:
        name: Pulumi resource name
        application: Application to apply
        opts: Resource options

    Returns:
        ConfigFile resource managing the Application
    """
    try:
        manifest = application.to_yaml()
    except yaml.YAMLError as e:
        pulumi.log.error(f"error marshalling application to yaml: {e}")
        raise
    return sync_kubernetes_manifest(name, manifest, opts=opts)
