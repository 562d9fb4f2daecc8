from aws_cdk import aws_ec2 as ec2, Tags
from constructs import Construct

DYNAMIC_PORT_RANGE = (32768, 65535)
MYSQL_PORT = 3306
REDIS_PORT = 6379


class TieredSecurityGroups(Construct):
    """
    Three-tier security group cascade:
    edge (ALB) <- internet, app (ECS) <- edge, data (RDS/Redis) <- app.
    Only the data tier has outbound traffic restricted.
    """

    def __init__(self, scope: Construct, construct_id: str, vpc: ec2.IVpc, environment: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.environment = environment

        # Edge tier
        self.edge = self._security_group(
            "ALBSecurityGroup", "ALB", "Security group for ALB", "LoadBalancer", vpc, True
        )
        self.edge.add_ingress_rule(
            ec2.Peer.any_ipv4(), ec2.Port.tcp(80), "Allow HTTP traffic from internet"
        )
        self.edge.add_ingress_rule(
            ec2.Peer.any_ipv4(), ec2.Port.tcp(443), "Allow HTTPS traffic from internet"
        )

        # App tier
        self.app = self._security_group(
            "ECSSecurityGroup", "ECS", "Security group for ECS tasks", "Application", vpc, True
        )
        from_edge = ec2.Peer.security_group_id(self.edge.security_group_id)
        self.app.add_ingress_rule(from_edge, ec2.Port.tcp(80), "Allow HTTP traffic from ALB")
        self.app.add_ingress_rule(
            from_edge,
            ec2.Port.tcp_range(*DYNAMIC_PORT_RANGE),
            "Allow dynamic port range from ALB",
        )

        # Data tier, no outbound
        self.data = self._security_group(
            "RDSSecurityGroup", "RDS", "Security group for RDS database", "Database", vpc, False
        )
        from_app = ec2.Peer.security_group_id(self.app.security_group_id)
        self.data.add_ingress_rule(from_app, ec2.Port.tcp(MYSQL_PORT), "Allow MySQL traffic from ECS")
        self.data.add_ingress_rule(from_app, ec2.Port.tcp(REDIS_PORT), "Allow Redis traffic from ECS")

    def _security_group(
        self,
        construct_id: str,
        short_name: str,
        description: str,
        component: str,
        vpc: ec2.IVpc,
        allow_all_outbound: bool,
    ) -> ec2.SecurityGroup:
        name = f"Service-{self.environment}-{short_name}-SG"
        security_group = ec2.SecurityGroup(
            self,
            construct_id,
            vpc=vpc,
            description=description,
            security_group_name=name,
            allow_all_outbound=allow_all_outbound,
        )
        Tags.of(security_group).add("Name", name)
        Tags.of(security_group).add("Environment", self.environment)
        Tags.of(security_group).add("Component", component)
        return security_group

    def by_tier(self, tier: str) -> ec2.SecurityGroup:
        return {"edge": self.edge, "app": self.app, "data": self.data}[tier]
