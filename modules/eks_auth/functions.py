"""
EKS Auth Module Functions
Builds the aws-auth ConfigMap that maps IAM principals to Kubernetes groups
https://docs.aws.amazon.com/eks/latest/userguide/add-user-role.html
"""

import pulumi
import yaml
from typing import Any, Dict, List, Optional

from config import AuthConfigMapInput
from modules.errors import ConfigurationError
from modules.iam.functions import discover_node_group_role, discover_sso_role
from modules.kubernetes.functions import sync_kubernetes_manifest

AUTH_CONFIGMAP_NAME = "aws-auth"
AUTH_CONFIGMAP_NAMESPACE = "kube-system"

NODE_USERNAME = "system:node:{{EC2PrivateDNSName}}"
NODE_GROUPS = ["system:bootstrappers", "system:nodes"]


class _BlockStyleDumper(yaml.SafeDumper):
    """Dumps multi-line strings as literal blocks, the layout EKS writes"""


def _represent_str(dumper: yaml.SafeDumper, data: str):
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BlockStyleDumper.add_representer(str, _represent_str)


def remove_arn_path(arn: str) -> str:
    """
    Strip the IAM path from an ARN

    The aws-auth ConfigMap does not accept ARNs with paths, so only the first
    and last path segments are kept.
    https://docs.aws.amazon.com/eks/latest/userguide/security-iam-troubleshoot.html#security-iam-troubleshoot-ConfigMap
    """
    parts = arn.split("/")
    if len(parts) < 3:
        return arn
    return "/".join([parts[0], parts[-1]])


def arn_to_username(arn: str) -> str:
    """Use the last path segment of an ARN as the username"""
    return arn.split("/")[-1]


def role_binding(role_arn: str, username: str, groups: List[str]) -> Dict[str, Any]:
    return {"groups": list(groups), "rolearn": role_arn, "username": username}


def user_binding(user_arn: str, username: str, groups: List[str]) -> Dict[str, Any]:
    return {"groups": list(groups), "userarn": user_arn, "username": username}


def resolve_node_group_role(auth_config: AuthConfigMapInput) -> str:
    """
    Resolve the worker node role from explicit config or by autodiscovery

    Args:
        auth_config: aws-auth configuration

    Returns:
        Node group IAM role ARN
    """
    if auth_config.nodegroup_iam_role_autodiscover:
        if not auth_config.eks_cluster_name:
            raise ConfigurationError(
                "Node Group IAM Role auto discover enabled, but EKS cluster name not supplied"
            )
        return discover_node_group_role(auth_config.eks_cluster_name)

    if not auth_config.nodegroup_iam_role:
        raise ConfigurationError("Node Group IAM Role not supplied, auto discover not enabled")
    return auth_config.nodegroup_iam_role


def build_auth_mappings(auth_config: AuthConfigMapInput) -> Dict[str, List[Dict[str, Any]]]:
    """
    Build the ordered role and user bindings for the aws-auth ConfigMap

    The worker node binding is always first. In initial import mode it is the
    only binding, so the EKS created ConfigMap can be imported without a diff.

    Args:
        auth_config: aws-auth configuration

    Returns:
        Dict with "mapRoles" and "mapUsers" binding lists
    """
    node_role_arn = resolve_node_group_role(auth_config)

    map_roles = [role_binding(node_role_arn, NODE_USERNAME, NODE_GROUPS)]
    map_users = []

    if auth_config.initial_import:
        pulumi.log.info("aws-auth initial import enabled, only the node group role is mapped")
        return {"mapRoles": map_roles, "mapUsers": map_users}

    for sso_role in auth_config.sso_permission_set_roles:
        role_arn = discover_sso_role(sso_role.name)
        map_roles.append(role_binding(
            remove_arn_path(role_arn),
            sso_role.username or sso_role.name,
            sso_role.permission_groups
        ))

    for role in auth_config.iam_roles:
        map_roles.append(role_binding(
            remove_arn_path(role.arn),
            role.username or arn_to_username(role.arn),
            role.permission_groups
        ))

    for user in auth_config.iam_users:
        map_users.append(user_binding(
            remove_arn_path(user.arn),
            user.username or arn_to_username(user.arn),
            user.permission_groups
        ))

    return {"mapRoles": map_roles, "mapUsers": map_users}


def dump_yaml(data: Any) -> str:
    return yaml.dump(data, Dumper=_BlockStyleDumper, default_flow_style=False, sort_keys=False)


def render_auth_config_map(mappings: Dict[str, List[Dict[str, Any]]]) -> str:
    """
    Render the aws-auth ConfigMap manifest

    mapUsers is omitted entirely when there are no user bindings, an empty
    value makes the import of the existing ConfigMap fail.

    Args:
        mappings: Output of build_auth_mappings

    Returns:
        ConfigMap YAML
    """
    data = {"mapRoles": dump_yaml(mappings["mapRoles"])}
    if mappings.get("mapUsers"):
        data["mapUsers"] = dump_yaml(mappings["mapUsers"])

    return dump_yaml({
        "apiVersion": "v1",
        "data": data,
        "kind": "ConfigMap",
        "metadata": {
            "name": AUTH_CONFIGMAP_NAME,
            "namespace": AUTH_CONFIGMAP_NAMESPACE,
        },
    })


def sync_auth_config_map(auth_config: AuthConfigMapInput,
                         opts: Optional[pulumi.ResourceOptions] = None) -> pulumi.Resource:
    """
    Build and apply the aws-auth ConfigMap

    Args:
        auth_config: aws-auth configuration
        opts: Resource options, typically the Kubernetes provider

    Returns:
        ConfigFile resource managing the ConfigMap
    """
    mappings = build_auth_mappings(auth_config)
    pulumi.log.info(
        f"Syncing aws-auth with {len(mappings['mapRoles'])} role and {len(mappings['mapUsers'])} user mappings"
    )

    import_id = f"{AUTH_CONFIGMAP_NAMESPACE}/{AUTH_CONFIGMAP_NAME}" if auth_config.initial_import else None
    return sync_kubernetes_manifest(
        "aws-auth-configmap",
        render_auth_config_map(mappings),
        import_id=import_id,
        opts=opts
    )
