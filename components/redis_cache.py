from typing import List

from aws_cdk import aws_elasticache as elasticache, Tags
from constructs import Construct

from config.environments import EnvironmentProfile
from components.tiered_security_groups import REDIS_PORT


class RedisCache(Construct):
    """
    ElastiCache Redis replication group. Automatic failover and Multi-AZ
    are enabled only when there is more than one node.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        profile: EnvironmentProfile,
        subnet_ids: List[str],
        security_group_id: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        config = profile.cache

        self.subnet_group = elasticache.CfnSubnetGroup(
            self,
            "RedisSubnetGroup",
            description="Subnet group for Redis cluster",
            subnet_ids=subnet_ids,
            cache_subnet_group_name=f"service-{profile.name}-redis-subnet-group",
        )

        self.replication_group = elasticache.CfnReplicationGroup(
            self,
            "RedisCluster",
            replication_group_description=f"Redis cluster for service {profile.name}",
            replication_group_id=f"service-{profile.name}-redis",
            engine="redis",
            cache_node_type=config.node_type,
            num_cache_clusters=config.node_count,
            cache_subnet_group_name=self.subnet_group.ref,
            security_group_ids=[security_group_id],
            port=REDIS_PORT,
            at_rest_encryption_enabled=True,
            transit_encryption_enabled=True,
            automatic_failover_enabled=config.automatic_failover,
            multi_az_enabled=config.multi_az,
            snapshot_retention_limit=config.snapshot_retention_days,
            snapshot_window="03:00-05:00",
            preferred_maintenance_window="sun:05:00-sun:06:00",
        )
        self.replication_group.add_dependency(self.subnet_group)

        Tags.of(self).add("Component", "Cache")

    @property
    def endpoint(self) -> str:
        return self.replication_group.attr_primary_end_point_address
