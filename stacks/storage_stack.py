import logging
from dataclasses import dataclass
from typing import Optional

from aws_cdk import CfnOutput, Stack, Tags, aws_ec2 as ec2
from constructs import Construct

from components.aurora_database import AuroraDatabase
from components.network_reference import resolve_network, resolve_security_group
from components.redis_cache import RedisCache
from components.storage_buckets import StorageBuckets
from config import exports
from config.environments import resolve_environment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEndpoints:
    database_endpoint: str
    database_reader_endpoint: str
    database_secret_arn: str
    cache_endpoint: str
    static_assets_bucket: str
    logs_bucket: str
    backups_bucket: str


class StorageStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: Optional[str] = None,
        vpc_id: Optional[str] = None,
        test_mode: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = resolve_environment(environment)
        self.environment_key = self.profile.environment.value

        self.vpc = resolve_network(self, self.profile, test_mode=test_mode, vpc_id=vpc_id)
        self.data_security_group = resolve_security_group(
            self, self.profile, "data", test_mode=test_mode
        )

        # Production keeps data stores in the isolated tier
        subnet_type = (
            ec2.SubnetType.PRIVATE_ISOLATED
            if self.profile.isolate_data_tier
            else ec2.SubnetType.PRIVATE_WITH_EGRESS
        )

        logger.info(
            "Building storage for %s: %d Aurora instance(s), %d Redis node(s)",
            self.environment_key,
            self.profile.database.instance_count,
            self.profile.cache.node_count,
        )

        self.database = AuroraDatabase(
            self,
            "Database",
            vpc=self.vpc,
            profile=self.profile,
            security_group=self.data_security_group,
            subnet_type=subnet_type,
        )

        self.cache = RedisCache(
            self,
            "Cache",
            profile=self.profile,
            subnet_ids=self.vpc.select_subnets(subnet_type=subnet_type).subnet_ids,
            security_group_id=self.data_security_group.security_group_id,
        )

        self.buckets = StorageBuckets(self, "Buckets", profile=self.profile)

        self.endpoints = StorageEndpoints(
            database_endpoint=self.database.cluster.cluster_endpoint.hostname,
            database_reader_endpoint=self.database.cluster.cluster_read_endpoint.hostname,
            database_secret_arn=self.database.secret_arn,
            cache_endpoint=self.cache.endpoint,
            static_assets_bucket=self.buckets.static_assets_bucket.bucket_name,
            logs_bucket=self.buckets.logs_bucket.bucket_name,
            backups_bucket=self.buckets.backups_bucket.bucket_name,
        )

        self._create_outputs()

        for key, value in self.profile.tags.items():
            Tags.of(self).add(key, value)
        Tags.of(self).add("StackType", "Storage")
        Tags.of(self).add("ManagedBy", "CDK")

    def _create_outputs(self):
        outputs = [
            ("AuroraClusterEndpoint", self.endpoints.database_endpoint,
             "Aurora MySQL Cluster Writer Endpoint", exports.AURORA_ENDPOINT),
            ("AuroraReaderEndpoint", self.endpoints.database_reader_endpoint,
             "Aurora MySQL Cluster Reader Endpoint", exports.AURORA_READER_ENDPOINT),
            ("AuroraSecretArn", self.endpoints.database_secret_arn,
             "Aurora MySQL credentials secret ARN", exports.AURORA_SECRET_ARN),
            ("ElastiCacheEndpoint", self.endpoints.cache_endpoint,
             "ElastiCache Redis Primary Endpoint", exports.REDIS_ENDPOINT),
            ("StaticAssetsBucketName", self.endpoints.static_assets_bucket,
             "Static Assets S3 Bucket Name", exports.STATIC_BUCKET),
            ("LogsBucketName", self.endpoints.logs_bucket,
             "Logs S3 Bucket Name", exports.LOGS_BUCKET),
            ("BackupsBucketName", self.endpoints.backups_bucket,
             "Backups S3 Bucket Name", exports.BACKUPS_BUCKET),
        ]
        for output_id, value, description, purpose in outputs:
            CfnOutput(
                self,
                output_id,
                value=value,
                description=description,
                export_name=exports.export_name(self.profile.environment, purpose),
            )
