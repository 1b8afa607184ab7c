"""
Unit tests for the VPC module
"""

import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import AvailabilityZoneInput, VpcConfigInput
from modules.errors import ConfigurationError
from modules.vpc.functions import create_vpc_resources


def _vpc_config(zones=2):
    return VpcConfigInput(
        cidr="10.0.0.0/16",
        availability_zones=[
            AvailabilityZoneInput(
                az_name=f"us-east-1{chr(ord('a') + i)}",
                public_subnet_cidr=f"10.0.{i}.0/24",
                private_subnet_cidr=f"10.0.{100 + i}.0/24"
            )
            for i in range(zones)
        ]
    )


class TestVpcResources(unittest.TestCase):
    """Test VPC creation"""

    def test_vpc_function_structure(self):
        """Test that the VPC function returns one subnet pair and NAT gateway per zone"""
        with patch('modules.vpc.functions.aws') as mock_aws, patch('modules.vpc.functions.pulumi'):
            mock_aws.ec2.Vpc.return_value = Mock(id="vpc-12345")
            mock_aws.ec2.InternetGateway.return_value = Mock(id="igw-12345")
            mock_aws.ec2.Subnet.side_effect = lambda name, **kwargs: Mock(id=f"{name}-id")
            mock_aws.ec2.Eip.return_value = Mock(id="eip-12345", public_ip="1.2.3.4")
            mock_aws.ec2.NatGateway.return_value = Mock(id="nat-12345")

            result = create_vpc_resources("test-cluster", _vpc_config(), tags={"Stack": "test"})

            self.assertEqual(result["vpc_id"], "vpc-12345")
            self.assertEqual(result["public_subnet_ids"],
                             ["test-cluster-public-subnet-0-id", "test-cluster-public-subnet-1-id"])
            self.assertEqual(result["private_subnet_ids"],
                             ["test-cluster-private-subnet-0-id", "test-cluster-private-subnet-1-id"])
            self.assertEqual(result["nat_gateway_ips"], ["1.2.3.4", "1.2.3.4"])
            self.assertEqual(mock_aws.ec2.NatGateway.call_count, 2)
            self.assertEqual(mock_aws.ec2.RouteTable.call_count, 4)

    def test_subnet_tags(self):
        """Test that subnets carry the load balancer discovery tags"""
        with patch('modules.vpc.functions.aws') as mock_aws, patch('modules.vpc.functions.pulumi'):
            create_vpc_resources("test-cluster", _vpc_config(zones=1), tags={"Stack": "test"})

            tags_by_name = {
                call.args[0]: call.kwargs["tags"] for call in mock_aws.ec2.Subnet.call_args_list
            }
            public_tags = tags_by_name["test-cluster-public-subnet-0"]
            private_tags = tags_by_name["test-cluster-private-subnet-0"]

            self.assertEqual(public_tags["kubernetes.io/role/elb"], "1")
            self.assertEqual(public_tags["kubernetes.io/cluster/test-cluster"], "owned")
            self.assertEqual(public_tags["Stack"], "test")
            self.assertEqual(private_tags["kubernetes.io/role/internal-elb"], "1")
            self.assertNotIn("kubernetes.io/role/elb", private_tags)

    def test_private_subnet_routes_through_own_nat_gateway(self):
        """Test that each private route targets the NAT gateway of its zone"""
        with patch('modules.vpc.functions.aws') as mock_aws, patch('modules.vpc.functions.pulumi'):
            mock_aws.ec2.NatGateway.side_effect = lambda name, **kwargs: Mock(id=f"{name}-id")

            create_vpc_resources("test-cluster", _vpc_config(), tags={})

            nat_routes = {
                call.args[0]: call.kwargs["nat_gateway_id"]
                for call in mock_aws.ec2.Route.call_args_list
                if "nat_gateway_id" in call.kwargs
            }
            self.assertEqual(nat_routes, {
                "test-cluster-private-route-0": "test-cluster-nat-gateway-0-id",
                "test-cluster-private-route-1": "test-cluster-nat-gateway-1-id",
            })

    def test_no_availability_zones(self):
        """Test that an empty zone list is rejected"""
        with patch('modules.vpc.functions.aws') as mock_aws:
            with self.assertRaises(ConfigurationError):
                create_vpc_resources("test-cluster", VpcConfigInput(cidr="10.0.0.0/16"))
            mock_aws.ec2.Vpc.assert_not_called()


if __name__ == '__main__':
    unittest.main()
