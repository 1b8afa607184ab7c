"""
EKS platform stack
VPC, EKS cluster and the cluster bootstrap, each layer gated by a deploy flag
"""
import pulumi

from config import get_config
from modules.eks.functions import create_eks_resources
from modules.errors import ConfigurationError
from modules.kubernetes.bootstrap import bootstrap_cluster
from modules.kubernetes.functions import create_kubernetes_provider
from modules.utils import run_program
from modules.vpc.functions import create_vpc_resources


@run_program
def main():
    config = get_config()
    tags = config.common_tags

    # 1. Network
    vpc = None
    if config.deploy_vpc:
        vpc = create_vpc_resources(config.cluster_name, config.vpc, tags)
        pulumi.export("vpc_id", vpc["vpc_id"])
        pulumi.export("public_subnet_ids", vpc["public_subnet_ids"])
        pulumi.export("private_subnet_ids", vpc["private_subnet_ids"])
        pulumi.export("nat_gateway_ips", vpc["nat_gateway_ips"])

    # 2. EKS cluster, nodes run in the private subnets
    eks = None
    if config.deploy_eks:
        if vpc is None:
            raise ConfigurationError("deploy_eks requires deploy_vpc in the same stack")
        eks = create_eks_resources(config.cluster_name, config.eks, vpc["private_subnet_ids"], tags)
        pulumi.export("cluster_name", eks["cluster_name"])
        pulumi.export("cluster_endpoint", eks["cluster_endpoint"])
        pulumi.export("node_group_role_arn", eks["node_group_role_arn"])
        pulumi.export("oidc_provider_arn", eks["oidc_provider_arn"])
        pulumi.export("cluster_autoscaler_role_arn", eks["cluster_autoscaler_role_arn"])
        pulumi.export("kubeconfig", eks["kubeconfig"])

    # 3. Platform bootstrap, uses the ambient kubeconfig when the cluster is managed elsewhere
    if config.deploy_k8s:
        provider = create_kubernetes_provider(config.cluster_name, eks["kubeconfig"]) if eks else None
        k8s_config = config.k8s
        bootstrap = bootstrap_cluster(
            k8s_config,
            config.platform_application,
            config.config,
            config.stack_name,
            auth_config=config.eks_auth if k8s_config.manage_eks_auth_configmap else None,
            provider=provider
        )
        pulumi.export("platform_application_enabled", bootstrap["_platform_application"] is not None)


main()
