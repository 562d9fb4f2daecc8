from aws_cdk import (
    aws_rds as rds,
    aws_ec2 as ec2,
    RemovalPolicy,
    Duration,
    Tags
)
from constructs import Construct
from config.environments import EnvironmentProfile

class AuroraDatabase(Construct):
    """
    Aurora MySQL cluster with one writer and instance_count - 1 readers.
    Storage is always encrypted; deletion protection follows the profile.
    """

    def __init__(self, scope: Construct, construct_id: str,
                 vpc: ec2.IVpc,
                 profile: EnvironmentProfile,
                 security_group: ec2.ISecurityGroup,
                 subnet_type: ec2.SubnetType,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        config = profile.database
        instance_type = ec2.InstanceType(config.instance_class)

        self.subnet_group = rds.SubnetGroup(self, "DatabaseSubnetGroup",
            description="Subnet group for RDS Aurora cluster",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=subnet_type),
            subnet_group_name=f"service-{profile.name}-db-subnet-group"
        )

        self.cluster = rds.DatabaseCluster(self, "AuroraCluster",
            engine=rds.DatabaseClusterEngine.aurora_mysql(
                version=rds.AuroraMysqlEngineVersion.VER_3_08_0
            ),
            writer=rds.ClusterInstance.provisioned("writer", instance_type=instance_type),
            readers=[
                rds.ClusterInstance.provisioned(f"reader{i}", instance_type=instance_type)
                for i in range(1, config.reader_count + 1)
            ],
            vpc=vpc,
            subnet_group=self.subnet_group,
            security_groups=[security_group],
            credentials=rds.Credentials.from_generated_secret(
                "admin",
                secret_name=f"service-{profile.name}-db-credentials",
                exclude_characters=" %+~`#$&*()|[]{}:;<>?!'/@\"\\"
            ),
            default_database_name="service",
            cluster_identifier=f"service-{profile.name}-aurora-cluster",
            backup=rds.BackupProps(
                retention=Duration.days(config.backup_retention_days),
                preferred_window="03:00-04:00"
            ),
            preferred_maintenance_window="sun:04:00-sun:05:00",
            storage_encrypted=True,
            deletion_protection=config.deletion_protection,
            cloudwatch_logs_exports=["error", "general", "slowquery"],
            monitoring_interval=Duration.seconds(config.monitoring_interval_seconds),
            removal_policy=RemovalPolicy.SNAPSHOT if profile.is_production else RemovalPolicy.DESTROY
        )

        for key, value in profile.tags.items():
            Tags.of(self.cluster).add(key, value)
        Tags.of(self.cluster).add("Component", "Database")

    @property
    def secret_arn(self) -> str:
        return self.cluster.secret.secret_arn
