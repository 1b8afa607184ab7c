"""
EKS Auth Module
aws-auth ConfigMap management
"""

from .functions import (
    arn_to_username,
    build_auth_mappings,
    remove_arn_path,
    render_auth_config_map,
    sync_auth_config_map,
)

__all__ = [
    "arn_to_username",
    "build_auth_mappings",
    "remove_arn_path",
    "render_auth_config_map",
    "sync_auth_config_map",
]
