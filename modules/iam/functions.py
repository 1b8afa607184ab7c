"""
IAM Module Functions
IAM roles for the EKS control plane, node groups and IRSA service accounts,
plus lookups for roles that already exist in the account
"""

import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict, List

from modules.errors import DiscoveryError

# roles created by IAM Identity Center for permission sets live under this path
SSO_ROLE_PATH_PREFIX = "/aws-reserved/sso.amazonaws.com/"

AWS_MANAGED_POLICY_PREFIX = "arn:aws:iam::aws:policy/"

CLUSTER_POLICY_ARNS = [
    "arn:aws:iam::aws:policy/AmazonEKSServicePolicy",
    "arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
]

NODE_GROUP_POLICY_ARNS = [
    "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
]


def service_assume_role_policy(service: str) -> str:
    """Trust policy allowing an AWS service to assume a role"""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {"Service": service},
        }],
    })


def attach_managed_policies(prefix: str, role: aws.iam.Role, policy_arns: List[str]) -> Dict[str, Any]:
    """
    Attach AWS managed policies to a role

    Args:
        prefix: Resource name prefix
        role: Role to attach the policies to
        policy_arns: Managed policy ARNs

    Returns:
        Dict of attachments keyed by policy name
    """
    attachments = {}
    for policy_arn in policy_arns:
        policy_name = policy_arn[len(AWS_MANAGED_POLICY_PREFIX):]
        attachments[policy_name] = aws.iam.RolePolicyAttachment(
            f"{prefix}-{policy_name}-policy-attachment",
            role=role.name,
            policy_arn=policy_arn
        )
    return attachments


def create_cluster_role(name: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create IAM role for the EKS control plane

    Args:
        name: Cluster name
        tags: Additional tags

    Returns:
        Dict with role resource and outputs
    """
    tags = tags or {}

    role = aws.iam.Role(
        "eks-iam-role",
        assume_role_policy=service_assume_role_policy("eks.amazonaws.com"),
        tags={
            **tags,
            "Name": f"{name}-cluster-role",
            "Module": "iam"
        }
    )

    policy_attachments = attach_managed_policies("eks", role, CLUSTER_POLICY_ARNS)

    return {
        "role": role,
        "policy_attachments": policy_attachments,
        "role_arn": role.arn,
        "role_name": role.name
    }


def create_node_group_role(name: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create IAM role for EKS managed node groups

    Args:
        name: Cluster name
        tags: Additional tags

    Returns:
        Dict with role resource and outputs
    """
    tags = tags or {}

    role = aws.iam.Role(
        "nodegroup-iam-role",
        assume_role_policy=service_assume_role_policy("ec2.amazonaws.com"),
        tags={
            **tags,
            "Name": f"{name}-node-group-role",
            "Module": "iam"
        }
    )

    policy_attachments = attach_managed_policies("nodegroup", role, NODE_GROUP_POLICY_ARNS)

    return {
        "role": role,
        "policy_attachments": policy_attachments,
        "role_arn": role.arn,
        "role_name": role.name
    }


def create_irsa_assume_role_policy(oidc_provider: aws.iam.OpenIdConnectProvider,
                                   namespace: str, service_account: str) -> pulumi.Output[str]:
    """
    Trust policy binding a Kubernetes service account to an IAM role (IRSA)

    Args:
        oidc_provider: Cluster OIDC provider
        namespace: Service account namespace
        service_account: Service account name

    Returns:
        Output with the policy document JSON
    """
    def build(args):
        arn, url = args
        issuer = url.replace("https://", "")
        return json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Action": "sts:AssumeRoleWithWebIdentity",
                "Effect": "Allow",
                "Principal": {"Federated": arn},
                "Condition": {
                    "StringEquals": {
                        f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account}"
                    }
                }
            }]
        })

    return pulumi.Output.all(oidc_provider.arn, oidc_provider.url).apply(build)


def cluster_autoscaler_policy_document(cluster_name: str) -> str:
    """Cluster autoscaler permissions, scaling restricted to this cluster's groups"""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Action": [
                    "autoscaling:DescribeAutoScalingGroups",
                    "autoscaling:DescribeAutoScalingInstances",
                    "autoscaling:DescribeLaunchConfigurations",
                    "autoscaling:DescribeTags",
                    "ec2:DescribeLaunchTemplateVersions",
                    "ec2:DescribeInstanceTypes",
                ],
                "Effect": "Allow",
                "Resource": "*",
            },
            {
                "Action": [
                    "autoscaling:SetDesiredCapacity",
                    "autoscaling:TerminateInstanceInAutoScalingGroup",
                    "autoscaling:UpdateAutoScalingGroup",
                ],
                "Effect": "Allow",
                "Resource": "*",
                "Condition": {
                    "StringEquals": {
                        f"autoscaling:ResourceTag/kubernetes.io/cluster/{cluster_name}": "owned"
                    }
                },
            },
        ],
    })


def create_cluster_autoscaler_role(cluster_name: str, oidc_provider: aws.iam.OpenIdConnectProvider,
                                   namespace: str, service_account: str,
                                   tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create the cluster autoscaler IAM policy and IRSA role

    Args:
        cluster_name: EKS cluster name
        oidc_provider: Cluster OIDC provider
        namespace: Cluster autoscaler namespace
        service_account: Cluster autoscaler service account
        tags: Additional tags

    Returns:
        Dict with policy, role and attachment resources
    """
    tags = tags or {}

    policy = aws.iam.Policy(
        "cluster-autoscaler-policy",
        name=f"cluster-autoscaler-policy-{cluster_name}",
        description=f"cluster autoscaler policy for {cluster_name} eks cluster",
        policy=cluster_autoscaler_policy_document(cluster_name),
        tags={**tags, "Module": "iam"}
    )

    role = aws.iam.Role(
        "cluster-autoscaler-role",
        name=f"cluster-autoscaler-role-{cluster_name}",
        assume_role_policy=create_irsa_assume_role_policy(oidc_provider, namespace, service_account),
        tags={**tags, "Module": "iam"}
    )

    attachment = aws.iam.RolePolicyAttachment(
        "cluster-autoscaler-role-policy-attachment",
        role=role.name,
        policy_arn=policy.arn
    )

    return {
        "policy": policy,
        "role": role,
        "attachment": attachment,
        "role_arn": role.arn
    }


def discover_node_group_role(cluster_name: str) -> str:
    """
    Find the IAM role used by the cluster's worker nodes

    Only the first node group returned by AWS is inspected, so all node
    groups are expected to share one role.

    Args:
        cluster_name: EKS cluster name

    Returns:
        Node group IAM role ARN
    """
    node_groups = aws.eks.get_node_groups(cluster_name=cluster_name)
    names = list(node_groups.names or [])
    if not names:
        raise DiscoveryError(f"node group role auto discovery failed, no node groups found for cluster {cluster_name}")

    node_group = aws.eks.get_node_group(cluster_name=cluster_name, node_group_name=names[0])
    pulumi.log.info(f"Discovered node group role {node_group.node_role_arn} from node group {names[0]}")
    return node_group.node_role_arn


def discover_sso_role(permission_set_name: str, path_prefix: str = SSO_ROLE_PATH_PREFIX) -> str:
    """
    Find the IAM role IAM Identity Center provisioned for a permission set

    Args:
        permission_set_name: Permission set name
        path_prefix: IAM path the SSO roles live under

    Returns:
        Role ARN, including its IAM path
    """
    roles = aws.iam.get_roles(
        name_regex=f"AWSReservedSSO_{permission_set_name}_.*",
        path_prefix=path_prefix
    )
    arns = list(roles.arns or [])

    # exactly one role per permission set
    if len(arns) != 1:
        raise DiscoveryError(f"admin role auto discovery failed, discovered {len(arns)}")

    return arns[0]
