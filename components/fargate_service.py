from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_ecr as ecr,
    aws_elasticloadbalancingv2 as elbv2,
    aws_applicationautoscaling as appscaling,
    aws_iam as iam,
    aws_logs as logs,
    aws_secretsmanager as secretsmanager,
    aws_servicediscovery as servicediscovery,
    Duration,
    RemovalPolicy,
    Tags,
)
from constructs import Construct
from config.environments import ComputeProfile, EnvironmentProfile
from typing import Dict, List, Optional

PROXY_IMAGE = "nginx:1.24-alpine"
PROXY_CONTAINER = "nginx-web"
APP_CONTAINER = "php-app"
CONTAINER_PORT = 80

# Share of task memory reserved for each container
PROXY_MEMORY_SHARE = 40
APP_MEMORY_SHARE = 60

SERVICE_NAMESPACE = "service.local"
SERVICE_DISCOVERY_NAME = "api"

_RETENTION = {
    3: logs.RetentionDays.THREE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    30: logs.RetentionDays.ONE_MONTH,
}

_TAG_STATUS = {
    "any": ecr.TagStatus.ANY,
    "tagged": ecr.TagStatus.TAGGED,
    "untagged": ecr.TagStatus.UNTAGGED,
}


def capacity_provider_strategies(compute: ComputeProfile) -> List[ecs.CapacityProviderStrategy]:
    """Spot keeps one on-demand task as a baseline and puts 4/5 of the rest on spot"""
    if compute.enable_fargate_spot:
        return [
            ecs.CapacityProviderStrategy(capacity_provider="FARGATE", weight=1, base=1),
            ecs.CapacityProviderStrategy(capacity_provider="FARGATE_SPOT", weight=4),
        ]
    return [ecs.CapacityProviderStrategy(capacity_provider="FARGATE", weight=1)]


class FargateWebService(Construct):
    """
    ECS Fargate service behind an internet-facing ALB.

    The task runs an nginx front proxy next to the application container;
    the proxy only starts once the application reports healthy.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        vpc: ec2.IVpc,
        profile: EnvironmentProfile,
        compute: ComputeProfile,
        edge_security_group: ec2.ISecurityGroup,
        app_security_group: ec2.ISecurityGroup,
        container_environment: Dict[str, str],
        database_secret: Optional[secretsmanager.ISecret] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = profile
        self.compute = compute
        self.vpc = vpc
        env = profile.environment.value
        self.cluster_name = f"service-{env}-cluster"
        self.service_name = f"service-{env}-fargate-service"

        self.cluster = ecs.Cluster(
            self,
            "ServiceCluster",
            vpc=vpc,
            cluster_name=self.cluster_name,
            enable_fargate_capacity_providers=True,
            container_insights_v2=(
                ecs.ContainerInsights.ENHANCED
                if profile.is_production
                else ecs.ContainerInsights.DISABLED
            ),
        )

        self.repository = self._create_repository()

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "ServiceALB",
            vpc=vpc,
            internet_facing=True,
            load_balancer_name=f"service-{env}-alb",
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            security_group=edge_security_group,
        )

        self.task_definition = self._create_task_definition()
        self._create_containers(container_environment, database_secret)

        self.service = ecs.FargateService(
            self,
            "ServiceFargateService",
            cluster=self.cluster,
            task_definition=self.task_definition,
            service_name=self.service_name,
            desired_count=compute.desired_count,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            assign_public_ip=False,
            security_groups=[app_security_group],
            max_healthy_percent=200,
            min_healthy_percent=50,
            health_check_grace_period=Duration.seconds(300),
            platform_version=ecs.FargatePlatformVersion.LATEST,
            capacity_provider_strategies=capacity_provider_strategies(compute),
            # ECS Exec outside production only
            enable_execute_command=not profile.is_production,
        )

        self.target_group = elbv2.ApplicationTargetGroup(
            self,
            "ServiceTargetGroup",
            vpc=vpc,
            port=CONTAINER_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            target_group_name=f"service-{env}-tg",
            health_check=elbv2.HealthCheck(
                path="/health",
                port=str(CONTAINER_PORT),
                protocol=elbv2.Protocol.HTTP,
                interval=Duration.seconds(30),
                timeout=Duration.seconds(5),
                healthy_threshold_count=2,
                unhealthy_threshold_count=3,
                healthy_http_codes="200,301,302",
            ),
        )

        # Ingress rules live in the network stack
        self.listener = self.load_balancer.add_listener(
            "HTTPListener",
            port=80,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=False,
            default_target_groups=[self.target_group],
        )
        self.service.attach_to_application_target_group(self.target_group)

        self.discovery_service = None
        if compute.enable_service_discovery:
            self.discovery_service = self._create_service_discovery()

        self._create_scaling_policies()

        Tags.of(self.cluster).add("Component", "Application")
        Tags.of(self.load_balancer).add("Component", "LoadBalancer")
        Tags.of(self.repository).add("Component", "ContainerRegistry")

    def _create_repository(self) -> ecr.Repository:
        production = self.profile.is_production
        return ecr.Repository(
            self,
            "ServiceECRRepository",
            repository_name=f"service-{self.profile.environment.value}",
            image_scan_on_push=True,
            lifecycle_rules=[
                ecr.LifecycleRule(
                    description=rule.description,
                    rule_priority=rule.priority,
                    tag_status=_TAG_STATUS[rule.tag_status],
                    max_image_count=rule.max_image_count,
                    max_image_age=(
                        Duration.days(rule.max_image_age_days)
                        if rule.max_image_age_days
                        else None
                    ),
                    tag_prefix_list=list(rule.tag_prefixes) or None,
                )
                for rule in self.profile.logs.image_lifecycle
            ],
            removal_policy=RemovalPolicy.RETAIN if production else RemovalPolicy.DESTROY,
            image_tag_mutability=(
                ecr.TagMutability.IMMUTABLE if production else ecr.TagMutability.MUTABLE
            ),
        )

    def _create_task_definition(self) -> ecs.FargateTaskDefinition:
        env = self.profile.environment.value

        execution_role = iam.Role(
            self,
            "ECSExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonECSTaskExecutionRolePolicy"
                )
            ],
            description=f"ECS Task Execution Role for {env}",
        )

        task_role = iam.Role(
            self,
            "ECSTaskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            description=f"ECS Task Role for {env}",
        )
        task_role.add_to_policy(
            iam.PolicyStatement(
                actions=[
                    "secretsmanager:GetSecretValue",
                    "ssm:GetParameter",
                    "ssm:GetParameters",
                ],
                resources=["*"],
            )
        )

        return ecs.FargateTaskDefinition(
            self,
            "ServiceTaskDefinition",
            family=f"service-{env}-task",
            cpu=self.compute.cpu,
            memory_limit_mib=self.compute.memory_mib,
            execution_role=execution_role,
            task_role=task_role,
        )

    def _log_driver(self, log_group: Optional[logs.ILogGroup], prefix: str) -> Optional[ecs.LogDriver]:
        if log_group is None:
            return None
        return ecs.LogDrivers.aws_logs(log_group=log_group, stream_prefix=prefix)

    def _create_containers(
        self,
        container_environment: Dict[str, str],
        database_secret: Optional[secretsmanager.ISecret],
    ):
        log_group = None
        if self.compute.enable_logging:
            log_group = logs.LogGroup(
                self,
                "ServiceLogGroup",
                log_group_name=f"/ecs/service-{self.profile.environment.value}",
                retention=_RETENTION[self.profile.logs.retention_days],
                removal_policy=RemovalPolicy.DESTROY,
            )

        secrets = {}
        if database_secret is not None:
            secrets = {
                "DB_USERNAME": ecs.Secret.from_secrets_manager(database_secret, "username"),
                "DB_PASSWORD": ecs.Secret.from_secrets_manager(database_secret, "password"),
            }

        memory = self.compute.memory_mib

        self.proxy_container = self.task_definition.add_container(
            PROXY_CONTAINER,
            container_name=PROXY_CONTAINER,
            image=ecs.ContainerImage.from_registry(PROXY_IMAGE),
            memory_reservation_mib=memory * PROXY_MEMORY_SHARE // 100,
            essential=True,
            logging=self._log_driver(log_group, "nginx"),
            port_mappings=[
                ecs.PortMapping(container_port=CONTAINER_PORT, protocol=ecs.Protocol.TCP)
            ],
        )

        self.app_container = self.task_definition.add_container(
            APP_CONTAINER,
            container_name=APP_CONTAINER,
            image=ecs.ContainerImage.from_ecr_repository(self.repository, "latest"),
            environment=container_environment,
            secrets=secrets or None,
            memory_reservation_mib=memory * APP_MEMORY_SHARE // 100,
            essential=True,
            logging=self._log_driver(log_group, "php"),
            health_check=ecs.HealthCheck(
                command=["CMD-SHELL", "php -v || exit 1"],
                interval=Duration.seconds(30),
                timeout=Duration.seconds(5),
                retries=3,
                start_period=Duration.seconds(60),
            ),
        )

        self.proxy_container.add_container_dependencies(
            ecs.ContainerDependency(
                container=self.app_container,
                condition=ecs.ContainerDependencyCondition.HEALTHY,
            )
        )

    def _create_service_discovery(self) -> servicediscovery.Service:
        namespace = servicediscovery.PrivateDnsNamespace(
            self,
            "ServiceNamespace",
            name=SERVICE_NAMESPACE,
            vpc=self.vpc,
            description=f"Service discovery namespace for {self.profile.environment.value}",
        )

        discovery_service = namespace.create_service(
            "ServiceDiscovery",
            name=SERVICE_DISCOVERY_NAME,
            description="Service discovery for API service",
            dns_record_type=servicediscovery.DnsRecordType.A,
            dns_ttl=Duration.seconds(60),
            custom_health_check=servicediscovery.HealthCheckCustomConfig(failure_threshold=3),
        )

        self.service.associate_cloud_map_service(service=discovery_service)
        return discovery_service

    def _create_scaling_policies(self):
        """Target tracking on CPU and memory, plus request count steps where configured"""
        config = self.profile.autoscaling
        cooldown = Duration.seconds(config.cooldown_seconds)

        self.scaling = self.service.auto_scale_task_count(
            min_capacity=self.compute.min_capacity,
            max_capacity=self.compute.max_capacity,
        )

        self.scaling.scale_on_cpu_utilization(
            "CpuScaling",
            target_utilization_percent=config.cpu_target_percent,
            scale_in_cooldown=cooldown,
            scale_out_cooldown=cooldown,
        )

        self.scaling.scale_on_memory_utilization(
            "MemoryScaling",
            target_utilization_percent=config.memory_target_percent,
            scale_in_cooldown=cooldown,
            scale_out_cooldown=cooldown,
        )

        if config.request_count_steps:
            self.scaling.scale_on_metric(
                "RequestCountScaling",
                metric=self.target_group.metric_request_count(
                    period=Duration.minutes(1), statistic="Sum"
                ),
                scaling_steps=[
                    appscaling.ScalingInterval(
                        change=band.change, lower=band.lower, upper=band.upper
                    )
                    for band in config.request_count_steps
                ],
                adjustment_type=appscaling.AdjustmentType.CHANGE_IN_CAPACITY,
                cooldown=Duration.minutes(config.step_cooldown_minutes),
                metric_aggregation_type=appscaling.MetricAggregationType.AVERAGE,
            )
