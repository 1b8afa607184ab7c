"""
VPC Module
One public subnet, NAT gateway and private subnet per availability zone
"""

from .functions import create_vpc_resources

__all__ = ["create_vpc_resources"]
