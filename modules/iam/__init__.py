"""
IAM Module
EKS roles, IRSA roles and existing role discovery
"""

from .functions import (
    SSO_ROLE_PATH_PREFIX,
    create_cluster_autoscaler_role,
    create_cluster_role,
    create_irsa_assume_role_policy,
    create_node_group_role,
    discover_node_group_role,
    discover_sso_role,
)

__all__ = [
    "SSO_ROLE_PATH_PREFIX",
    "create_cluster_autoscaler_role",
    "create_cluster_role",
    "create_irsa_assume_role_policy",
    "create_node_group_role",
    "discover_node_group_role",
    "discover_sso_role",
]
