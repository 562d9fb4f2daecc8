import logging
from typing import Dict, Optional

from aws_cdk import CfnOutput, Fn, Stack, Tags, aws_secretsmanager as secretsmanager
from constructs import Construct

from components.fargate_service import (
    SERVICE_DISCOVERY_NAME,
    SERVICE_NAMESPACE,
    FargateWebService,
)
from components.network_reference import resolve_network, resolve_security_group
from config import exports
from config.environments import resolve_compute, resolve_environment, validate_compute
from stacks.storage_stack import StorageEndpoints

logger = logging.getLogger(__name__)

MOCK_DATABASE_HOST = "mock-aurora-endpoint.cluster-xyz.rds.amazonaws.com"
MOCK_REDIS_HOST = "mock-redis-endpoint.cache.amazonaws.com"


class ApplicationStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: Optional[str] = None,
        vpc_id: Optional[str] = None,
        storage: Optional[StorageEndpoints] = None,
        test_mode: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = resolve_environment(environment)
        self.environment_key = self.profile.environment.value
        self.compute = resolve_compute(self.profile.environment)
        validate_compute(self.compute)
        self.test_mode = test_mode

        logger.info(
            "Building application for %s: %s CPU / %s MiB, %d task(s), spot=%s",
            self.environment_key,
            self.compute.cpu,
            self.compute.memory_mib,
            self.compute.desired_count,
            self.compute.enable_fargate_spot,
        )

        self.vpc = resolve_network(self, self.profile, test_mode=test_mode, vpc_id=vpc_id)

        database_host, redis_host, database_secret = self._storage_references(storage)

        self.web_service = FargateWebService(
            self,
            "Service",
            vpc=self.vpc,
            profile=self.profile,
            compute=self.compute,
            edge_security_group=resolve_security_group(self, self.profile, "edge", test_mode),
            app_security_group=resolve_security_group(self, self.profile, "app", test_mode),
            container_environment=self._container_environment(database_host, redis_host),
            database_secret=database_secret,
        )
        self.load_balancer = self.web_service.load_balancer
        self.service = self.web_service.service

        self._create_outputs()

        for key, value in self.profile.tags.items():
            Tags.of(self).add(key, value)
        Tags.of(self).add("StackType", "Application")
        Tags.of(self).add("ManagedBy", "CDK")

    def _import(self, purpose: str) -> str:
        return Fn.import_value(exports.export_name(self.profile.environment, purpose))

    def _storage_references(self, storage: Optional[StorageEndpoints]):
        """Database host, cache host and credentials secret for the app container"""
        if self.test_mode:
            return MOCK_DATABASE_HOST, MOCK_REDIS_HOST, None

        if storage is not None:
            database_host = storage.database_endpoint
            redis_host = storage.cache_endpoint
            secret_arn = storage.database_secret_arn
        else:
            database_host = self._import(exports.AURORA_ENDPOINT)
            redis_host = self._import(exports.REDIS_ENDPOINT)
            secret_arn = self._import(exports.AURORA_SECRET_ARN)

        secret = secretsmanager.Secret.from_secret_complete_arn(
            self, "DatabaseSecret", secret_arn
        )
        return database_host, redis_host, secret

    def _container_environment(self, database_host: str, redis_host: str) -> Dict[str, str]:
        return {
            "APP_ENV": self.profile.name,
            "DB_CONNECTION": "mysql",
            "CACHE_DRIVER": "redis",
            "AWS_DEFAULT_REGION": self.profile.region,
            "DB_HOST": database_host,
            "REDIS_HOST": redis_host,
        }

    def _export(self, output_id: str, value: str, description: str, purpose: str):
        CfnOutput(
            self,
            output_id,
            value=value,
            description=description,
            export_name=exports.export_name(self.profile.environment, purpose),
        )

    def _create_outputs(self):
        web = self.web_service

        self._export(
            "ECRRepositoryURI",
            web.repository.repository_uri,
            "ECR Repository URI for container images",
            exports.ECR_URI,
        )
        self._export(
            "LoadBalancerDNS",
            web.load_balancer.load_balancer_dns_name,
            "Application Load Balancer DNS name",
            exports.ALB_DNS,
        )
        self._export(
            "LoadBalancerArn",
            web.load_balancer.load_balancer_arn,
            "Application Load Balancer ARN",
            exports.ALB_ARN,
        )
        self._export(
            "TargetGroupArn",
            web.target_group.target_group_arn,
            "Target Group ARN for ECS service",
            exports.TARGET_GROUP_ARN,
        )
        self._export("ECSClusterName", web.cluster_name, "ECS Cluster name", exports.CLUSTER_NAME)
        self._export("ECSServiceName", web.service_name, "ECS Service name", exports.SERVICE_NAME)
        self._export(
            "ApplicationURL",
            Fn.join("", ["http://", web.load_balancer.load_balancer_dns_name]),
            "Application URL",
            exports.APP_URL,
        )

        if web.discovery_service is not None:
            self._export(
                "ServiceDiscoveryARN",
                web.discovery_service.service_arn,
                "Service Discovery ARN",
                exports.SERVICE_DISCOVERY_ARN,
            )
            self._export(
                "InternalServiceDNS",
                f"{SERVICE_DISCOVERY_NAME}.{SERVICE_NAMESPACE}",
                "Internal DNS name for service communication",
                exports.INTERNAL_DNS,
            )
