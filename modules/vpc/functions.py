"""
VPC Module Functions
Creates a VPC with one public subnet, NAT gateway and private subnet per availability zone
"""

import pulumi
import pulumi_aws as aws
from typing import Any, Dict, List

from config import AvailabilityZoneInput, VpcConfigInput
from modules.errors import ConfigurationError


def create_vpc(name: str, cidr: str, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create the VPC

    Args:
        name: VPC name
        cidr: VPC CIDR block
        tags: Additional tags

    Returns:
        Dict with vpc resource and outputs
    """
    tags = tags or {}

    vpc = aws.ec2.Vpc(
        f"{name}-vpc",
        cidr_block=cidr,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags={
            **tags,
            "Name": name,
            "Module": "vpc"
        }
    )

    return {
        "vpc": vpc,
        "vpc_id": vpc.id
    }


def create_internet_gateway(name: str, vpc_id: pulumi.Output[str], tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create Internet Gateway for VPC

    Args:
        name: Resource name prefix
        vpc_id: VPC ID to attach to
        tags: Additional tags

    Returns:
        Dict with igw resource and outputs
    """
    tags = tags or {}

    igw = aws.ec2.InternetGateway(
        f"{name}-internet-gateway",
        vpc_id=vpc_id,
        tags={
            **tags,
            "Name": f"{name}-igw",
            "Module": "vpc"
        }
    )

    return {
        "igw": igw,
        "igw_id": igw.id
    }


def create_public_subnet(name: str, index: int, vpc_id: pulumi.Output[str], igw_id: pulumi.Output[str],
                         az: AvailabilityZoneInput, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create a public subnet routed through the internet gateway

    Args:
        name: Resource name prefix
        index: Availability zone index
        vpc_id: VPC ID
        igw_id: Internet Gateway ID
        az: Availability zone configuration
        tags: Additional tags

    Returns:
        Dict with subnet and routing resources
    """
    tags = tags or {}

    subnet = aws.ec2.Subnet(
        f"{name}-public-subnet-{index}",
        vpc_id=vpc_id,
        cidr_block=az.public_subnet_cidr,
        availability_zone=az.az_name,
        tags={
            **tags,
            "Name": f"{name}-public-{az.az_name}",
            "Type": "public",
            f"kubernetes.io/cluster/{name}": "owned",
            "kubernetes.io/role/elb": "1",
            "Module": "vpc"
        }
    )

    route_table = aws.ec2.RouteTable(
        f"{name}-public-route-table-{index}",
        vpc_id=vpc_id,
        tags={
            **tags,
            "Name": f"{name}-public-rt-{az.az_name}",
            "Module": "vpc"
        }
    )

    route = aws.ec2.Route(
        f"{name}-public-route-{index}",
        route_table_id=route_table.id,
        destination_cidr_block="0.0.0.0/0",
        gateway_id=igw_id
    )

    association = aws.ec2.RouteTableAssociation(
        f"{name}-public-route-table-association-{index}",
        subnet_id=subnet.id,
        route_table_id=route_table.id
    )

    return {
        "subnet": subnet,
        "route_table": route_table,
        "route": route,
        "association": association,
        "subnet_id": subnet.id
    }


def create_nat_gateway(name: str, index: int, public_subnet_id: pulumi.Output[str],
                       tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create an Elastic IP and NAT gateway in a public subnet

    Args:
        name: Resource name prefix
        index: Availability zone index
        public_subnet_id: Subnet the NAT gateway lives in
        tags: Additional tags

    Returns:
        Dict with NAT gateway resources and outputs
    """
    tags = tags or {}

    eip = aws.ec2.Eip(
        f"{name}-elastic-ip-{index}",
        domain="vpc",
        tags={
            **tags,
            "Name": f"{name}-nat-eip-{index}",
            "Module": "vpc"
        }
    )

    nat_gateway = aws.ec2.NatGateway(
        f"{name}-nat-gateway-{index}",
        allocation_id=eip.id,
        subnet_id=public_subnet_id,
        tags={
            **tags,
            "Name": f"{name}-nat-{index}",
            "Module": "vpc"
        }
    )

    return {
        "eip": eip,
        "nat_gateway": nat_gateway,
        "nat_gateway_id": nat_gateway.id,
        "nat_gateway_ip": eip.public_ip
    }


def create_private_subnet(name: str, index: int, vpc_id: pulumi.Output[str], nat_gateway_id: pulumi.Output[str],
                          az: AvailabilityZoneInput, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create a private subnet routed through its own zone's NAT gateway

    Args:
        name: Resource name prefix
        index: Availability zone index
        vpc_id: VPC ID
        nat_gateway_id: NAT gateway of the same availability zone
        az: Availability zone configuration
        tags: Additional tags

    Returns:
        Dict with subnet and routing resources
    """
    tags = tags or {}

    subnet = aws.ec2.Subnet(
        f"{name}-private-subnet-{index}",
        vpc_id=vpc_id,
        cidr_block=az.private_subnet_cidr,
        availability_zone=az.az_name,
        tags={
            **tags,
            "Name": f"{name}-private-{az.az_name}",
            "Type": "private",
            f"kubernetes.io/cluster/{name}": "owned",
            "kubernetes.io/role/internal-elb": "1",
            "Module": "vpc"
        }
    )

    route_table = aws.ec2.RouteTable(
        f"{name}-private-route-table-{index}",
        vpc_id=vpc_id,
        tags={
            **tags,
            "Name": f"{name}-private-rt-{az.az_name}",
            "Module": "vpc"
        }
    )

    route = aws.ec2.Route(
        f"{name}-private-route-{index}",
        route_table_id=route_table.id,
        destination_cidr_block="0.0.0.0/0",
        nat_gateway_id=nat_gateway_id
    )

    association = aws.ec2.RouteTableAssociation(
        f"{name}-private-route-table-association-{index}",
        subnet_id=subnet.id,
        route_table_id=route_table.id
    )

    return {
        "subnet": subnet,
        "route_table": route_table,
        "route": route,
        "association": association,
        "subnet_id": subnet.id
    }


def create_vpc_resources(name: str, vpc_config: VpcConfigInput, tags: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Create complete VPC infrastructure for EKS

    Args:
        name: Stack / cluster name used as resource prefix
        vpc_config: VPC CIDR and availability zone layout
        tags: Additional tags for all resources

    Returns:
        Dict with all VPC resources and outputs
    """
    tags = tags or {}

    if not vpc_config.availability_zones:
        raise ConfigurationError("vpc config requires at least one availability zone")

    pulumi.log.info(f"Creating VPC {name} across {len(vpc_config.availability_zones)} availability zones")

    vpc_result = create_vpc(name, vpc_config.cidr, tags)
    igw_result = create_internet_gateway(name, vpc_result["vpc_id"], tags)

    public_subnets: List[Dict[str, Any]] = []
    nat_gateways: List[Dict[str, Any]] = []
    private_subnets: List[Dict[str, Any]] = []
    for i, az in enumerate(vpc_config.availability_zones):
        public_result = create_public_subnet(name, i, vpc_result["vpc_id"], igw_result["igw_id"], az, tags)
        nat_result = create_nat_gateway(name, i, public_result["subnet_id"], tags)
        private_result = create_private_subnet(name, i, vpc_result["vpc_id"], nat_result["nat_gateway_id"], az, tags)

        public_subnets.append(public_result)
        nat_gateways.append(nat_result)
        private_subnets.append(private_result)

    return {
        "vpc_id": vpc_result["vpc_id"],
        "public_subnet_ids": [s["subnet_id"] for s in public_subnets],
        "private_subnet_ids": [s["subnet_id"] for s in private_subnets],
        "nat_gateway_ips": [n["nat_gateway_ip"] for n in nat_gateways],
        # Keep references to all resources for dependencies
        "_vpc": vpc_result["vpc"],
        "_igw": igw_result["igw"],
        "_public_subnets": [s["subnet"] for s in public_subnets],
        "_nat_gateways": [n["nat_gateway"] for n in nat_gateways],
        "_private_subnets": [s["subnet"] for s in private_subnets]
    }
