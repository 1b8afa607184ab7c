"""
EKS Module
Cluster, managed node groups, OIDC provider and kubeconfig
"""

from .functions import create_eks_resources, generate_kubeconfig

__all__ = ["create_eks_resources", "generate_kubeconfig"]
