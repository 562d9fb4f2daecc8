from aws_cdk import (
    aws_ec2 as ec2,
    aws_logs as logs,
    RemovalPolicy,
    Tags
)
from constructs import Construct
from typing import List, Optional
from config.environments import EnvironmentProfile, NetworkSettings

class SecureVpc(Construct):
    """
    Service VPC with public and private tiers, plus an isolated
    database tier for environments that require it
    """

    def __init__(self, scope: Construct, construct_id: str,
                 profile: EnvironmentProfile,
                 settings: NetworkSettings,
                 cidr: Optional[str] = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = profile
        env = profile.environment.value

        self.vpc = ec2.Vpc(self, "ServiceVPC",
            ip_addresses=ec2.IpAddresses.cidr(cidr or profile.vpc_cidr),
            max_azs=profile.az_count,
            vpc_name=f"Service-{env}-VPC",
            nat_gateways=profile.nat_gateway_count,
            enable_dns_hostnames=settings.enable_dns_hostnames,
            enable_dns_support=settings.enable_dns_support,
            subnet_configuration=self._subnet_configuration(settings.subnet_cidr_mask)
        )

        # VPC Flow Logs
        if profile.enable_flow_logs:
            self.flow_log_group = logs.LogGroup(self, "VPCFlowLogGroup",
                retention=logs.RetentionDays.ONE_MONTH,
                removal_policy=RemovalPolicy.DESTROY
            )

            self.flow_logs = ec2.FlowLog(self, "VPCFlowLogs",
                resource_type=ec2.FlowLogResourceType.from_vpc(self.vpc),
                destination=ec2.FlowLogDestination.to_cloud_watch_logs(self.flow_log_group)
            )

        for key, value in profile.tags.items():
            Tags.of(self.vpc).add(key, value)
        Tags.of(self.vpc).add("Component", "Network")
        Tags.of(self.vpc).add("ManagedBy", "CDK")

    def _subnet_configuration(self, cidr_mask: int) -> List[ec2.SubnetConfiguration]:
        # Without NAT there is no egress route, so the private tier is isolated
        private_type = (
            ec2.SubnetType.PRIVATE_WITH_EGRESS
            if self.profile.enable_nat_gateway
            else ec2.SubnetType.PRIVATE_ISOLATED
        )
        subnets = [
            ec2.SubnetConfiguration(
                name="Public",
                subnet_type=ec2.SubnetType.PUBLIC,
                cidr_mask=cidr_mask
            ),
            ec2.SubnetConfiguration(
                name="Private",
                subnet_type=private_type,
                cidr_mask=cidr_mask
            ),
        ]

        if self.profile.isolate_data_tier:
            subnets.append(
                ec2.SubnetConfiguration(
                    name="Database",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=cidr_mask
                )
            )

        return subnets

    @property
    def public_subnets(self) -> List[ec2.ISubnet]:
        return self.vpc.public_subnets

    @property
    def private_subnets(self) -> List[ec2.ISubnet]:
        if self.profile.enable_nat_gateway:
            return self.vpc.private_subnets
        return self.vpc.select_subnets(subnet_group_name="Private").subnets

    @property
    def isolated_subnets(self) -> List[ec2.ISubnet]:
        if not self.profile.isolate_data_tier:
            return []
        return self.vpc.select_subnets(subnet_group_name="Database").subnets
