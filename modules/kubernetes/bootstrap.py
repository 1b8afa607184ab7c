"""
Cluster bootstrap
Installs kube-prometheus-stack and argo-cd with Helm, manages the aws-auth
ConfigMap and hands the rest of the platform to an Argo CD Application
"""

import pulumi
import pulumi_kubernetes as k8s
from typing import Any, Dict, List, Optional

from config import AuthConfigMapInput, HelmReleaseConfigInput, K8sPlatformConfigInput, PlatformApplicationConfig
from modules.eks_auth.functions import sync_auth_config_map
from modules.errors import ConfigurationError
from modules.kubernetes.argocd import load_application_template, materialize_application, sync_argocd_application
from modules.secrets.functions import PLACEHOLDER_PATTERN, replace_secrets

ARGOCD_CHART_VERSION = "5.46.8"
ARGOCD_VALUES_FILES = ["./helm-values/argo-cd-values.yaml"]
KUBE_PROMETHEUS_STACK_CHART_VERSION = "51.2.0"
KUBE_PROMETHEUS_STACK_VALUES_FILES = ["./helm-values/prometheus-values.yaml"]

PROMETHEUS_NAMESPACE = "kube-prometheus-stack"


def _resource_options(provider: Optional[k8s.Provider], depends_on: List[pulumi.Resource] = None) -> pulumi.ResourceOptions:
    return pulumi.ResourceOptions(provider=provider, depends_on=[d for d in depends_on or [] if d is not None])


def _value_files(release: HelmReleaseConfigInput, defaults: List[str]) -> List[pulumi.FileAsset]:
    return [pulumi.FileAsset(path) for path in (release.values_files or defaults)]


def deploy_prometheus_remote_write_basic_auth_secret(k8s_config: K8sPlatformConfigInput, config: pulumi.Config,
                                                     stack_name: str,
                                                     provider: Optional[k8s.Provider] = None) -> Optional[k8s.core.v1.Secret]:
    """
    Create the basic auth secret kube-prometheus-stack uses for remote write

    Returns:
        Secret resource, or None when the secret is not managed
    """
    if not k8s_config.manage_prometheus_remote_write_basic_auth_secret:
        return None

    return k8s.core.v1.Secret(
        "prometheus-remote-write-basic-auth-secret",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=k8s_config.prometheus_remote_write_secret_name,
            namespace=PROMETHEUS_NAMESPACE
        ),
        string_data={
            "username": k8s_config.prometheus_remote_write_basic_auth_username or stack_name,
            "password": config.require_secret("prometheusRemoteWriteBasicAuthPassword"),
        },
        opts=_resource_options(provider)
    )


def deploy_kube_prometheus_stack(k8s_config: K8sPlatformConfigInput, provider: Optional[k8s.Provider] = None,
                                 depends_on: List[pulumi.Resource] = None) -> k8s.helm.v3.Release:
    """Install kube-prometheus-stack with Helm"""
    release = k8s_config.kube_prometheus_stack_helm

    return k8s.helm.v3.Release(
        "kube-prometheus-stack",
        chart="kube-prometheus-stack",
        name="kube-prometheus-stack",
        namespace=PROMETHEUS_NAMESPACE,
        create_namespace=True,
        version=release.version or KUBE_PROMETHEUS_STACK_CHART_VERSION,
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo="https://prometheus-community.github.io/helm-charts"
        ),
        value_yaml_files=_value_files(release, KUBE_PROMETHEUS_STACK_VALUES_FILES),
        opts=_resource_options(provider, depends_on)
    )


def argocd_repository_values(k8s_config: K8sPlatformConfigInput, config: pulumi.Config) -> Dict[str, Any]:
    """Private Helm repositories argo-cd can pull from, authenticated with the helmRepoPat secret"""
    if not k8s_config.argocd_helm_repositories:
        return {}

    token = config.require_secret("helmRepoPat")
    repositories = {}
    for repository in k8s_config.argocd_helm_repositories:
        repositories[repository.name] = {
            "name": repository.name,
            "type": "helm",
            "url": repository.url,
            "username": token,
            "password": token,
        }
    return {"configs": {"repositories": repositories}}


def deploy_argocd(k8s_config: K8sPlatformConfigInput, config: pulumi.Config,
                  provider: Optional[k8s.Provider] = None,
                  depends_on: List[pulumi.Resource] = None) -> k8s.helm.v3.Release:
    """Install argo-cd with Helm"""
    release = k8s_config.argocd_helm

    return k8s.helm.v3.Release(
        "argo-cd",
        chart="argo-cd",
        name="argo-cd",
        namespace="argo-cd",
        create_namespace=True,
        version=release.version or ARGOCD_CHART_VERSION,
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(
            repo="https://argoproj.github.io/argo-helm"
        ),
        value_yaml_files=_value_files(release, ARGOCD_VALUES_FILES),
        values=argocd_repository_values(k8s_config, config),
        opts=_resource_options(provider, depends_on)
    )


def deploy_platform_application(platform_config: PlatformApplicationConfig, config: pulumi.Config,
                                provider: Optional[k8s.Provider] = None,
                                depends_on: List[pulumi.Resource] = None) -> Optional[pulumi.Resource]:
    """
    Sync the platform services Argo CD Application

    Returns:
        Application resource, or None when the application is disabled
    """
    if not platform_config.enabled:
        return None

    values = platform_config.values
    if values and PLACEHOLDER_PATTERN.search(values):
        values = replace_secrets(values, config)

    application = materialize_application(
        load_application_template(),
        sync_policy=platform_config.sync_policy,
        target_revision=platform_config.target_revision,
        values=values
    )

    try:
        return sync_argocd_application("cluster-services", application, opts=_resource_options(provider, depends_on))
    except Exception as e:
        pulumi.log.error(f"error syncing cluster application: {e}")
        raise


def deploy_cert_manager_dns_solver_secret(k8s_config: K8sPlatformConfigInput, config: pulumi.Config,
                                          provider: Optional[k8s.Provider] = None,
                                          depends_on: List[pulumi.Resource] = None) -> Optional[k8s.core.v1.Secret]:
    """Create the Cloudflare API token secret used by cert-manager DNS01 solvers"""
    if not k8s_config.manage_cert_manager_dns_solver_secret:
        return None

    return k8s.core.v1.Secret(
        "cert-manager-cloudflare-api-token-secret",
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name="cloudflare-api-token-secret",
            namespace="cert-manager"
        ),
        string_data={
            "api-token": config.require_secret("cloudflareApiToken"),
        },
        type="Opaque",
        opts=_resource_options(provider, depends_on)
    )


def bootstrap_cluster(k8s_config: K8sPlatformConfigInput,
                      platform_config: PlatformApplicationConfig,
                      config: pulumi.Config,
                      stack_name: str,
                      auth_config: Optional[AuthConfigMapInput] = None,
                      provider: Optional[k8s.Provider] = None) -> Dict[str, Any]:
    """
    Bootstrap the cluster platform

    Args:
        k8s_config: Platform configuration
        platform_config: Platform application overrides
        config: Stack configuration, used for secrets
        stack_name: Stack name, the default remote write username
        auth_config: aws-auth configuration, required when the ConfigMap is managed
        provider: Kubernetes provider, defaults to the ambient kubeconfig

    Returns:
        Dict with the bootstrap resources
    """
    auth_config_map = None
    if k8s_config.manage_eks_auth_configmap:
        if auth_config is None:
            raise ConfigurationError("aws-auth management enabled without an eks-auth configuration")
        auth_config_map = sync_auth_config_map(auth_config, opts=_resource_options(provider))

    remote_write_secret = deploy_prometheus_remote_write_basic_auth_secret(k8s_config, config, stack_name, provider)

    try:
        prometheus = deploy_kube_prometheus_stack(k8s_config, provider, depends_on=[remote_write_secret])
    except Exception as e:
        pulumi.log.error(f"error deploying kube-prometheus-stack: {e}")
        raise

    # the argo-cd chart installs service monitors
    try:
        argocd = deploy_argocd(k8s_config, config, provider, depends_on=[prometheus])
    except Exception as e:
        pulumi.log.error(f"error deploying argocd: {e}")
        raise

    # the application CRD comes with argo-cd
    platform_application = deploy_platform_application(platform_config, config, provider, depends_on=[argocd])

    cert_manager_secret = deploy_cert_manager_dns_solver_secret(
        k8s_config, config, provider, depends_on=[platform_application]
    )

    return {
        "_auth_config_map": auth_config_map,
        "_prometheus_remote_write_secret": remote_write_secret,
        "_kube_prometheus_stack": prometheus,
        "_argocd": argocd,
        "_platform_application": platform_application,
        "_cert_manager_dns_solver_secret": cert_manager_secret
    }
