"""
EKS Module Functions
Creates the EKS cluster, managed node groups, the IRSA OIDC provider and a kubeconfig
"""

import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict, List

from config import EksConfigInput, NodeGroupConfigInput
from modules.errors import ConfigurationError
from modules.iam.functions import create_cluster_autoscaler_role, create_cluster_role, create_node_group_role

# thumbprint of the root CA for the EKS OIDC endpoints
# https://github.com/hashicorp/terraform-provider-aws/issues/10104#issuecomment-545264374
AWS_ROOT_CA_THUMBPRINT = "9e99a48a9960b14926bb7f3b02e22da2b0ab7280"

CLUSTER_LOG_TYPES = ["api", "audit", "authenticator", "controllerManager", "scheduler"]


def create_eks_cluster(name: str, version: str, role_arn: pulumi.Output[str],
                       subnet_ids: List[pulumi.Output[str]],
                       public_access_cidrs: List[str] = None,
                       tags: Dict[str, str] = None,
                       opts: pulumi.ResourceOptions = None) -> Dict[str, Any]:
    """
    Create EKS cluster

    Args:
        name: Cluster name
        version: Kubernetes version
        role_arn: IAM role ARN for cluster
        subnet_ids: List of subnet IDs
        public_access_cidrs: List of CIDRs for public access
        tags: Additional tags
        opts: Resource options

    Returns:
        Dict with cluster resource and outputs
    """
    tags = tags or {}
    public_access_cidrs = public_access_cidrs or ["0.0.0.0/0"]

    cluster = aws.eks.Cluster(
        "eks-cluster",
        name=name,
        version=version,
        role_arn=role_arn,
        enabled_cluster_log_types=CLUSTER_LOG_TYPES,
        vpc_config=aws.eks.ClusterVpcConfigArgs(
            subnet_ids=subnet_ids,
            endpoint_public_access=True,
            public_access_cidrs=public_access_cidrs
        ),
        tags={
            **tags,
            "Name": name,
            "Module": "eks"
        },
        opts=opts
    )

    return {
        "cluster": cluster,
        "cluster_name": cluster.name,
        "cluster_arn": cluster.arn,
        "cluster_endpoint": cluster.endpoint,
        "cluster_certificate_authority_data": cluster.certificate_authority.data
    }


def create_node_group(node_group_config: NodeGroupConfigInput, cluster_name: pulumi.Output[str],
                      role_arn: pulumi.Output[str], subnet_ids: List[pulumi.Output[str]],
                      version: str, tags: Dict[str, str] = None,
                      depends_on: List[pulumi.Resource] = None) -> aws.eks.NodeGroup:
    """
    Create EKS managed node group

    Desired size is left to the cluster autoscaler after creation.

    Args:
        node_group_config: Node group sizing and instance types
        cluster_name: EKS cluster name
        role_arn: IAM role ARN for node group
        subnet_ids: List of subnet IDs
        version: Kubernetes version of the nodes
        tags: Additional tags
        depends_on: Resources the node group must wait for

    Returns:
        Node group resource
    """
    tags = tags or {}

    return aws.eks.NodeGroup(
        f"node-group-{node_group_config.name}",
        cluster_name=cluster_name,
        node_group_name_prefix=node_group_config.name,
        node_role_arn=role_arn,
        instance_types=node_group_config.instance_types,
        subnet_ids=subnet_ids,
        version=version,
        scaling_config=aws.eks.NodeGroupScalingConfigArgs(
            desired_size=node_group_config.desired_size,
            max_size=node_group_config.max_size,
            min_size=node_group_config.min_size
        ),
        tags={
            **tags,
            "Name": node_group_config.name,
            "Module": "eks"
        },
        opts=pulumi.ResourceOptions(
            ignore_changes=["scalingConfig.desiredSize"],
            depends_on=depends_on
        )
    )


def create_oidc_provider(cluster: aws.eks.Cluster, thumbprint: str = AWS_ROOT_CA_THUMBPRINT,
                         tags: Dict[str, str] = None) -> aws.iam.OpenIdConnectProvider:
    """
    Create the OIDC provider used for IAM roles for service accounts

    Args:
        cluster: EKS cluster
        thumbprint: Root CA thumbprint of the OIDC issuer
        tags: Additional tags

    Returns:
        OIDC provider resource
    """
    tags = tags or {}

    return aws.iam.OpenIdConnectProvider(
        "eks-oidc-provider",
        client_id_lists=["sts.amazonaws.com"],
        thumbprint_lists=[thumbprint],
        url=cluster.identities[0].oidcs[0].issuer,
        tags={**tags, "Module": "eks"}
    )


def generate_kubeconfig(cluster_name: str, endpoint: str, ca_data: str,
                        assume_role_arn: str = "", aws_profile: str = "") -> str:
    """
    Render a kubeconfig that authenticates through `aws eks get-token`

    Args:
        cluster_name: EKS cluster name
        endpoint: API server endpoint
        ca_data: Base64 cluster CA certificate
        assume_role_arn: Optional role to assume when requesting tokens
        aws_profile: Optional AWS profile used to request tokens

    Returns:
        Kubeconfig JSON document
    """
    args = ["eks", "get-token", "--cluster-name", cluster_name]
    if assume_role_arn:
        args += ["--role-arn", assume_role_arn]

    user_exec = {
        "apiVersion": "client.authentication.k8s.io/v1beta1",
        "command": "aws",
        "args": args,
    }
    if aws_profile:
        user_exec["env"] = [{"name": "AWS_PROFILE", "value": aws_profile}]

    return json.dumps({
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{
            "name": cluster_name,
            "cluster": {
                "server": endpoint,
                "certificate-authority-data": ca_data,
            },
        }],
        "contexts": [{
            "name": cluster_name,
            "context": {"cluster": cluster_name, "user": cluster_name},
        }],
        "current-context": cluster_name,
        "users": [{
            "name": cluster_name,
            "user": {"exec": user_exec},
        }],
    })


def create_eks_resources(cluster_name: str, eks_config: EksConfigInput,
                         subnet_ids: List[pulumi.Output[str]],
                         tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create complete EKS infrastructure

    Args:
        cluster_name: EKS cluster name
        eks_config: Cluster version, node groups and kubeconfig settings
        subnet_ids: Subnets for the control plane and node groups
        tags: Additional tags

    Returns:
        Dict with all EKS resources and outputs
    """
    tags = tags or {}

    if not eks_config.k8s_version:
        raise ConfigurationError("eks config requires k8s-version")
    if not eks_config.node_groups:
        raise ConfigurationError("eks config requires at least one node group")

    nodegroup_version = eks_config.nodegroup_version or eks_config.k8s_version
    pulumi.log.info(
        f"Creating EKS cluster {cluster_name} version {eks_config.k8s_version} "
        f"with {len(eks_config.node_groups)} node groups at version {nodegroup_version}"
    )

    cluster_role_result = create_cluster_role(cluster_name, tags)
    node_role_result = create_node_group_role(cluster_name, tags)

    cluster_result = create_eks_cluster(
        name=cluster_name,
        version=eks_config.k8s_version,
        role_arn=cluster_role_result["role_arn"],
        subnet_ids=subnet_ids,
        tags=tags,
        opts=pulumi.ResourceOptions(depends_on=list(cluster_role_result["policy_attachments"].values()))
    )

    node_groups = []
    for node_group_config in eks_config.node_groups:
        node_groups.append(create_node_group(
            node_group_config,
            cluster_name=cluster_result["cluster_name"],
            role_arn=node_role_result["role_arn"],
            subnet_ids=subnet_ids,
            version=nodegroup_version,
            tags=tags,
            depends_on=list(node_role_result["policy_attachments"].values())
        ))

    oidc_provider = create_oidc_provider(cluster_result["cluster"], tags=tags)

    autoscaler_result = create_cluster_autoscaler_role(
        cluster_name,
        oidc_provider,
        namespace=eks_config.cluster_autoscaler_namespace,
        service_account=eks_config.cluster_autoscaler_service_account,
        tags=tags
    )

    kubeconfig = pulumi.Output.all(
        cluster_result["cluster_name"],
        cluster_result["cluster_endpoint"],
        cluster_result["cluster_certificate_authority_data"]
    ).apply(lambda args: generate_kubeconfig(
        args[0], args[1], args[2],
        assume_role_arn=eks_config.kubeconfig_assume_role_arn,
        aws_profile=eks_config.kubeconfig_aws_profile
    ))

    return {
        "cluster_name": cluster_result["cluster_name"],
        "cluster_arn": cluster_result["cluster_arn"],
        "cluster_endpoint": cluster_result["cluster_endpoint"],
        "node_group_role_arn": node_role_result["role_arn"],
        "oidc_provider_arn": oidc_provider.arn,
        "cluster_autoscaler_role_arn": autoscaler_result["role_arn"],
        "kubeconfig": pulumi.Output.secret(kubeconfig),
        # Keep references to resources for dependencies
        "_cluster": cluster_result["cluster"],
        "_node_groups": node_groups,
        "_oidc_provider": oidc_provider
    }
