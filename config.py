"""
Configuration management for the EKS platform modules
Stack config objects are parsed into typed inputs for each module
"""

import dataclasses
import pulumi
from typing import Any, Dict, List, Optional


@dataclasses.dataclass(frozen=True)
class AvailabilityZoneInput:
    az_name: str
    public_subnet_cidr: str
    private_subnet_cidr: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AvailabilityZoneInput":
        return cls(
            az_name=data.get("az-name", ""),
            public_subnet_cidr=data.get("public-subnet-cidr", ""),
            private_subnet_cidr=data.get("private-subnet-cidr", ""),
        )


@dataclasses.dataclass(frozen=True)
class VpcConfigInput:
    cidr: str
    availability_zones: List[AvailabilityZoneInput] = dataclasses.field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VpcConfigInput":
        return cls(
            cidr=data.get("cidr", ""),
            availability_zones=[
                AvailabilityZoneInput.from_dict(az) for az in data.get("availability-zones") or []
            ],
        )


@dataclasses.dataclass(frozen=True)
class NodeGroupConfigInput:
    name: str
    desired_size: int
    max_size: int
    min_size: int
    instance_types: List[str] = dataclasses.field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeGroupConfigInput":
        return cls(
            name=data.get("name", ""),
            desired_size=int(data.get("desired-size", 0)),
            max_size=int(data.get("max-size", 0)),
            min_size=int(data.get("min-size", 0)),
            instance_types=list(data.get("instance-types") or []),
        )


@dataclasses.dataclass(frozen=True)
class EksConfigInput:
    k8s_version: str
    node_groups: List[NodeGroupConfigInput] = dataclasses.field(default_factory=list)
    # nodegroups may lag the control plane during upgrades
    nodegroup_version: str = ""
    kubeconfig_assume_role_arn: str = ""
    kubeconfig_aws_profile: str = ""
    cluster_autoscaler_service_account: str = "cluster-autoscaler"
    cluster_autoscaler_namespace: str = "cluster-autoscaler"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EksConfigInput":
        k8s_version = data.get("k8s-version", "")
        return cls(
            k8s_version=k8s_version,
            node_groups=[NodeGroupConfigInput.from_dict(ng) for ng in data.get("node-groups") or []],
            nodegroup_version=data.get("nodegroup-version") or k8s_version,
            kubeconfig_assume_role_arn=data.get("kubeconfig-assume-role-arn", ""),
            kubeconfig_aws_profile=data.get("kubeconfig-aws-profile", ""),
            cluster_autoscaler_service_account=data.get("cluster-autoscaler-serviceaccount") or "cluster-autoscaler",
            cluster_autoscaler_namespace=data.get("cluster-autoscaler-namespace") or "cluster-autoscaler",
        )


@dataclasses.dataclass(frozen=True)
class SSORolePermissionSetInput:
    name: str
    permission_groups: List[str] = dataclasses.field(default_factory=list)
    # defaults to the permission set name
    username: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SSORolePermissionSetInput":
        return cls(
            name=data.get("name", ""),
            permission_groups=list(data.get("permission-groups") or []),
            username=data.get("username", ""),
        )


@dataclasses.dataclass(frozen=True)
class IAMIdentityInput:
    arn: str
    permission_groups: List[str] = dataclasses.field(default_factory=list)
    # defaults to the last segment of the arn
    username: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IAMIdentityInput":
        return cls(
            arn=data.get("arn", ""),
            permission_groups=list(data.get("permission-groups") or []),
            username=data.get("username", ""),
        )


@dataclasses.dataclass(frozen=True)
class AuthConfigMapInput:
    # set on new clusters so the EKS created configmap can be imported,
    # unset afterwards to add the remaining identities
    initial_import: bool = False
    nodegroup_iam_role: str = ""
    nodegroup_iam_role_autodiscover: bool = False
    eks_cluster_name: str = ""
    sso_permission_set_roles: List[SSORolePermissionSetInput] = dataclasses.field(default_factory=list)
    iam_roles: List[IAMIdentityInput] = dataclasses.field(default_factory=list)
    iam_users: List[IAMIdentityInput] = dataclasses.field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthConfigMapInput":
        return cls(
            initial_import=bool(data.get("initial-import", False)),
            nodegroup_iam_role=data.get("nodegroup-iam-role", ""),
            nodegroup_iam_role_autodiscover=bool(data.get("nodegroup-iam-role-autodiscover", False)),
            eks_cluster_name=data.get("eks-cluster-name", ""),
            sso_permission_set_roles=[
                SSORolePermissionSetInput.from_dict(r) for r in data.get("sso-permission-set-roles") or []
            ],
            iam_roles=[IAMIdentityInput.from_dict(r) for r in data.get("iam-roles") or []],
            iam_users=[IAMIdentityInput.from_dict(u) for u in data.get("iam-users") or []],
        )


@dataclasses.dataclass(frozen=True)
class HelmReleaseConfigInput:
    version: str = ""
    values_files: List[str] = dataclasses.field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HelmReleaseConfigInput":
        data = data or {}
        return cls(
            version=data.get("version", ""),
            values_files=list(data.get("values-files") or []),
        )


@dataclasses.dataclass(frozen=True)
class HelmRepositoryInput:
    name: str
    url: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HelmRepositoryInput":
        return cls(name=data.get("name", ""), url=data.get("url", ""))


@dataclasses.dataclass(frozen=True)
class K8sPlatformConfigInput:
    argocd_helm: HelmReleaseConfigInput = dataclasses.field(default_factory=HelmReleaseConfigInput)
    kube_prometheus_stack_helm: HelmReleaseConfigInput = dataclasses.field(default_factory=HelmReleaseConfigInput)
    argocd_helm_repositories: List[HelmRepositoryInput] = dataclasses.field(default_factory=list)
    manage_eks_auth_configmap: bool = False
    manage_prometheus_remote_write_basic_auth_secret: bool = False
    prometheus_remote_write_basic_auth_username: str = ""
    prometheus_remote_write_secret_name: str = "prometheus-remote-write-basic-auth"
    manage_cert_manager_dns_solver_secret: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "K8sPlatformConfigInput":
        return cls(
            argocd_helm=HelmReleaseConfigInput.from_dict(data.get("argocd-helm-release")),
            kube_prometheus_stack_helm=HelmReleaseConfigInput.from_dict(
                data.get("kube-prometheus-stack-helm-release")
            ),
            argocd_helm_repositories=[
                HelmRepositoryInput.from_dict(r) for r in data.get("argocd-helm-repositories") or []
            ],
            manage_eks_auth_configmap=bool(data.get("manage-eks-auth-configmap", False)),
            manage_prometheus_remote_write_basic_auth_secret=bool(
                data.get("manage-prometheus-remote-write-basic-auth-secret", False)
            ),
            prometheus_remote_write_basic_auth_username=data.get("prometheus-remote-write-basic-auth-username", ""),
            prometheus_remote_write_secret_name=(
                data.get("prometheus-remote-write-basic-auth-secret-name") or "prometheus-remote-write-basic-auth"
            ),
            manage_cert_manager_dns_solver_secret=bool(data.get("manage-cert-manager-dns-solver-secret", False)),
        )


@dataclasses.dataclass(frozen=True)
class PlatformApplicationConfig:
    enabled: bool = False
    target_revision: str = ""
    sync_policy: Dict[str, Any] = dataclasses.field(default_factory=dict)
    values: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformApplicationConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            target_revision=data.get("targetRevision") or data.get("target-revision", ""),
            sync_policy=dict(data.get("syncPolicy") or data.get("sync-policy") or {}),
            values=data.get("values", ""),
        )


class Config:
    """Centralized configuration management for the platform stack"""

    def __init__(self):
        self.config = pulumi.Config()

        # Stack naming, the stack name doubles as the cluster name
        self.stack_name = pulumi.get_stack()
        self.cluster_name = self.config.get("cluster-name") or self.stack_name

        # Deployment layers
        self.deploy_vpc = self.config.get_bool("deploy_vpc") or False
        self.deploy_eks = self.config.get_bool("deploy_eks") or False
        self.deploy_k8s = self.config.get_bool("deploy_k8s") or False

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get common tags for all AWS resources"""
        base_tags = {
            "Stack": self.stack_name,
            "ManagedBy": "pulumi",
        }
        base_tags.update(self.additional_tags)
        return base_tags

    @property
    def vpc(self) -> VpcConfigInput:
        return VpcConfigInput.from_dict(self.config.require_object("vpc"))

    @property
    def eks(self) -> EksConfigInput:
        return EksConfigInput.from_dict(self.config.require_object("eks"))

    @property
    def k8s(self) -> K8sPlatformConfigInput:
        return K8sPlatformConfigInput.from_dict(self.config.get_object("k8s") or {})

    @property
    def eks_auth(self) -> AuthConfigMapInput:
        return AuthConfigMapInput.from_dict(self.config.require_object("eks-auth"))

    @property
    def platform_application(self) -> PlatformApplicationConfig:
        return PlatformApplicationConfig.from_dict(self.config.get_object("platform-application") or {})


def get_config() -> Config:
    """Get the stack configuration"""
    return Config()
