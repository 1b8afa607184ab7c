"""
Kubernetes Module
Manifest sync, Argo CD Applications and the cluster bootstrap
"""

from .functions import create_custom_resource_from_manifest, create_kubernetes_provider, sync_kubernetes_manifest
from .argocd import ArgocdApplication, materialize_application, sync_argocd_application

__all__ = [
    "ArgocdApplication",
    "create_custom_resource_from_manifest",
    "create_kubernetes_provider",
    "materialize_application",
    "sync_argocd_application",
    "sync_kubernetes_manifest",
]
