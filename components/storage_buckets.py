from aws_cdk import (
    aws_s3 as s3,
    RemovalPolicy,
    Tags
)
from constructs import Construct
from config.environments import EnvironmentProfile

class StorageBuckets(Construct):
    """
    Static assets, logs and backups buckets.

    static assets: versioned, S3-managed keys, CORS GET/HEAD, kept in production
    logs:          unversioned, S3-managed keys, always destroyed
    backups:       versioned, KMS-managed keys, always retained
    """

    def __init__(self, scope: Construct, construct_id: str,
                 profile: EnvironmentProfile,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.profile = profile

        self.static_assets_bucket = s3.Bucket(self, "StaticAssetsBucket",
            bucket_name=f"service-{profile.name}-static-assets",
            versioned=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            removal_policy=RemovalPolicy.RETAIN if profile.is_production else RemovalPolicy.DESTROY,
            # CloudFront reads
            cors=[
                s3.CorsRule(
                    allowed_methods=[s3.HttpMethods.GET, s3.HttpMethods.HEAD],
                    allowed_origins=["*"],
                    allowed_headers=["*"],
                    max_age=3000
                )
            ]
        )
        self._tag(self.static_assets_bucket, "StaticAssets")

        self.logs_bucket = s3.Bucket(self, "LogsBucket",
            bucket_name=f"service-{profile.name}-logs",
            versioned=False,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            removal_policy=RemovalPolicy.DESTROY
        )
        self._tag(self.logs_bucket, "Logs")

        self.backups_bucket = s3.Bucket(self, "BackupsBucket",
            bucket_name=f"service-{profile.name}-backups",
            versioned=True,
            bucket_key_enabled=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.KMS_MANAGED,
            removal_policy=RemovalPolicy.RETAIN
        )
        self._tag(self.backups_bucket, "Backups")

    def _tag(self, bucket: s3.Bucket, bucket_type: str):
        for key, value in self.profile.tags.items():
            Tags.of(bucket).add(key, value)
        Tags.of(bucket).add("Component", "Storage")
        Tags.of(bucket).add("BucketType", bucket_type)
