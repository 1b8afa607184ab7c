"""
Pulumi modules for the EKS platform
Each module exposes plain functions that declare resources and return their outputs
"""

from .vpc import create_vpc_resources
from .eks import create_eks_resources
from .eks_auth import sync_auth_config_map
from .kubernetes import create_kubernetes_provider, sync_argocd_application, sync_kubernetes_manifest
from .kubernetes.bootstrap import bootstrap_cluster
from .secrets import replace_secrets

__all__ = [
    "bootstrap_cluster",
    "create_eks_resources",
    "create_kubernetes_provider",
    "create_vpc_resources",
    "replace_secrets",
    "sync_argocd_application",
    "sync_auth_config_map",
    "sync_kubernetes_manifest",
]
