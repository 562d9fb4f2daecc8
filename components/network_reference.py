import logging
from typing import List, Optional

from aws_cdk import Fn, aws_ec2 as ec2
from constructs import Construct

from config import exports
from config.environments import EnvironmentProfile

logger = logging.getLogger(__name__)

# VPC ids that mean "take the VPC from the network stack exports"
PLACEHOLDER_VPC_IDS = frozenset({"vpc-from-network-stack", "vpc-12345"})

MOCK_AZ_COUNT = 2


def is_placeholder_vpc_id(vpc_id: Optional[str]) -> bool:
    return not vpc_id or vpc_id in PLACEHOLDER_VPC_IDS


def resolve_network(
    scope: Construct,
    profile: EnvironmentProfile,
    test_mode: bool = False,
    vpc_id: Optional[str] = None,
) -> ec2.IVpc:
    """
    Resolve the VPC a downstream stack deploys into.

    Order of precedence:
      1. test mode: a mock VPC with fixed ids, no lookups or imports
      2. an explicit, non-placeholder VPC id: context lookup of that VPC
      3. otherwise: rebuild the VPC from the network stack exports
    """
    env = profile.environment.value
    if test_mode:
        logger.info("Using mock VPC for %s", env)
        return _mock_vpc(scope, profile)

    if not is_placeholder_vpc_id(vpc_id):
        logger.info("Looking up existing VPC %s", vpc_id)
        return ec2.Vpc.from_lookup(scope, "ExistingVPC", vpc_id=vpc_id)

    logger.info("Importing VPC for %s from network stack exports", env)
    return _vpc_from_exports(scope, profile)


def _mock_vpc(scope: Construct, profile: EnvironmentProfile) -> ec2.IVpc:
    env = profile.environment.value
    indexes = range(1, MOCK_AZ_COUNT + 1)
    return ec2.Vpc.from_vpc_attributes(
        scope,
        "TestVPC",
        vpc_id=f"vpc-test-{env}-12345",
        availability_zones=list(profile.availability_zones[:MOCK_AZ_COUNT]),
        public_subnet_ids=[f"subnet-test-public-{i}-{env}" for i in indexes],
        private_subnet_ids=[f"subnet-test-private-{i}-{env}" for i in indexes],
        isolated_subnet_ids=[f"subnet-test-isolated-{i}-{env}" for i in indexes],
    )


def _split_export(profile: EnvironmentProfile, purpose: str) -> List[str]:
    """Split a comma-joined list export into one entry per AZ"""
    joined = Fn.import_value(exports.export_name(profile.environment, purpose))
    return [Fn.select(i, Fn.split(",", joined)) for i in range(profile.az_count)]


def _vpc_from_exports(scope: Construct, profile: EnvironmentProfile) -> ec2.IVpc:
    isolated = {}
    if profile.isolate_data_tier:
        isolated = dict(
            isolated_subnet_ids=_split_export(profile, exports.ISOLATED_SUBNET_IDS),
            isolated_subnet_route_table_ids=_split_export(
                profile, exports.ISOLATED_ROUTE_TABLE_IDS
            ),
        )

    return ec2.Vpc.from_vpc_attributes(
        scope,
        "ImportedVPC",
        vpc_id=Fn.import_value(exports.export_name(profile.environment, exports.VPC_ID)),
        availability_zones=list(profile.availability_zones[: profile.az_count]),
        public_subnet_ids=_split_export(profile, exports.PUBLIC_SUBNET_IDS),
        public_subnet_route_table_ids=_split_export(profile, exports.PUBLIC_ROUTE_TABLE_IDS),
        private_subnet_ids=_split_export(profile, exports.PRIVATE_SUBNET_IDS),
        private_subnet_route_table_ids=_split_export(profile, exports.PRIVATE_ROUTE_TABLE_IDS),
        **isolated,
    )


def resolve_security_group(
    scope: Construct,
    profile: EnvironmentProfile,
    tier: str,
    test_mode: bool = False,
) -> ec2.ISecurityGroup:
    """
    Reference a security group owned by the network stack.

    The group is imported immutable: its rules are managed by the network
    stack only.
    """
    env = profile.environment.value
    if test_mode:
        group_id = f"sg-test-{env}-{tier}"
    else:
        group_id = Fn.import_value(
            exports.export_name(profile.environment, exports.SECURITY_GROUP_EXPORTS[tier])
        )

    return ec2.SecurityGroup.from_security_group_id(
        scope,
        f"Imported{tier.capitalize()}SecurityGroup",
        group_id,
        mutable=False,
    )
