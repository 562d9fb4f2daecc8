import logging
from typing import List, Optional

from aws_cdk import CfnOutput, Fn, Stack, aws_ec2 as ec2
from constructs import Construct

from components.secure_vpc import SecureVpc
from components.tiered_security_groups import TieredSecurityGroups
from config import exports
from config.environments import ConfigurationError, get_network_settings, resolve_environment

logger = logging.getLogger(__name__)


class NetworkStack(Stack):
    """VPC, subnet tiers and the tiered security groups, published as exports"""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: Optional[str] = None,
        vpc_cidr: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = resolve_environment(environment)
        self.environment_key = self.profile.environment.value
        logger.info(
            "Building network for %s: %d AZs, %d NAT gateways",
            self.environment_key,
            self.profile.az_count,
            self.profile.nat_gateway_count,
        )

        self.vpc_construct = SecureVpc(
            self, "Network", profile=self.profile, settings=get_network_settings(), cidr=vpc_cidr
        )
        self.vpc = self.vpc_construct.vpc

        # Consumers split every list export into az_count entries
        if len(self.vpc.availability_zones) != self.profile.az_count:
            raise ConfigurationError(
                f"{self.environment_key} needs {self.profile.az_count} availability zones "
                f"but the VPC has {len(self.vpc.availability_zones)}; "
                "set an explicit account and region for this stack"
            )

        self.security_groups = TieredSecurityGroups(
            self, "SecurityGroups", vpc=self.vpc, environment=self.environment_key
        )

        self._create_outputs()

    def _export(self, output_id: str, value: str, description: str, purpose: str) -> CfnOutput:
        return CfnOutput(
            self,
            output_id,
            value=value,
            description=description,
            export_name=exports.export_name(self.profile.environment, purpose),
        )

    def _export_list(self, output_id: str, values: List[str], description: str, purpose: str):
        self._export(output_id, Fn.join(",", values), description, purpose)

    def _create_outputs(self):
        self._export("VpcId", self.vpc.vpc_id, "VPC ID for Service", exports.VPC_ID)

        self._export(
            "ALBSecurityGroupId",
            self.security_groups.edge.security_group_id,
            "ALB Security Group ID",
            exports.EDGE_SECURITY_GROUP_ID,
        )
        self._export(
            "ECSSecurityGroupId",
            self.security_groups.app.security_group_id,
            "ECS Security Group ID",
            exports.APP_SECURITY_GROUP_ID,
        )
        self._export(
            "RDSSecurityGroupId",
            self.security_groups.data.security_group_id,
            "RDS Security Group ID",
            exports.DATA_SECURITY_GROUP_ID,
        )

        tiers = [
            ("Public", self.vpc_construct.public_subnets, exports.PUBLIC_SUBNET_IDS, exports.PUBLIC_ROUTE_TABLE_IDS),
            ("Private", self.vpc_construct.private_subnets, exports.PRIVATE_SUBNET_IDS, exports.PRIVATE_ROUTE_TABLE_IDS),
        ]
        if self.profile.isolate_data_tier:
            tiers.append(
                ("Isolated", self.vpc_construct.isolated_subnets, exports.ISOLATED_SUBNET_IDS, exports.ISOLATED_ROUTE_TABLE_IDS)
            )

        for label, subnets, subnet_purpose, route_table_purpose in tiers:
            self._export_list(
                f"{label}SubnetIds",
                [subnet.subnet_id for subnet in subnets],
                f"{label} Subnet IDs",
                subnet_purpose,
            )
            self._export_list(
                f"{label}RouteTableIds",
                [subnet.route_table.route_table_id for subnet in subnets],
                f"{label} Route Table IDs",
                route_table_purpose,
            )
