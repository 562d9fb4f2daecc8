import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when environment or compute configuration is invalid"""


class UnknownEnvironmentError(ConfigurationError):
    """Raised when an environment key is not one of dev, staging, prod"""


class IncompatibleComputeError(ConfigurationError):
    """Raised when a CPU/memory pair is not a valid Fargate combination"""


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"

    @property
    def long_name(self) -> str:
        return _LONG_NAMES[self]

    @classmethod
    def parse(cls, name: Union[str, "Environment"]) -> "Environment":
        if isinstance(name, Environment):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownEnvironmentError(
                f"unknown environment: {name}. Available environments: "
                + ", ".join(list_recognized_environments())
            ) from None


_LONG_NAMES = {
    Environment.DEV: "development",
    Environment.STAGING: "staging",
    Environment.PROD: "production",
}

DEFAULT_ENVIRONMENT = Environment.DEV


@dataclass(frozen=True)
class NetworkSettings:
    subnet_cidr_mask: int = 24
    enable_dns_hostnames: bool = True
    enable_dns_support: bool = True


@dataclass(frozen=True)
class DatabaseProfile:
    instance_count: int
    instance_class: str
    backup_retention_days: int
    monitoring_interval_seconds: int
    deletion_protection: bool

    @property
    def reader_count(self) -> int:
        return max(self.instance_count - 1, 0)


@dataclass(frozen=True)
class CacheProfile:
    node_type: str
    node_count: int
    snapshot_retention_days: int

    @property
    def automatic_failover(self) -> bool:
        return self.node_count > 1

    @property
    def multi_az(self) -> bool:
        return self.node_count > 1


@dataclass(frozen=True)
class ImageLifecycleRule:
    description: str
    priority: int
    tag_status: str  # "any", "tagged" or "untagged"
    max_image_count: Optional[int] = None
    max_image_age_days: Optional[int] = None
    tag_prefixes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LogProfile:
    retention_days: int
    image_lifecycle: Tuple[ImageLifecycleRule, ...]


@dataclass(frozen=True)
class StepBand:
    change: int
    lower: Optional[float] = None
    upper: Optional[float] = None


@dataclass(frozen=True)
class AutoscalingProfile:
    cpu_target_percent: int
    memory_target_percent: int
    cooldown_seconds: int = 300
    request_count_steps: Tuple[StepBand, ...] = ()
    step_cooldown_minutes: int = 2


@dataclass(frozen=True)
class EnvironmentProfile:
    environment: Environment
    name: str
    vpc_cidr: str
    az_count: int
    enable_nat_gateway: bool
    enable_flow_logs: bool
    allow_ssh_access: bool
    restricted_cidrs: Tuple[str, ...]
    isolate_data_tier: bool
    region: str
    availability_zones: Tuple[str, ...]
    database: DatabaseProfile
    cache: CacheProfile
    logs: LogProfile
    autoscaling: AutoscalingProfile
    tags: Dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def is_production(self) -> bool:
        return self.environment is Environment.PROD

    @property
    def nat_gateway_count(self) -> int:
        return self.az_count if self.enable_nat_gateway else 0


@dataclass(frozen=True)
class ComputeProfile:
    cpu: int
    memory_mib: int
    desired_count: int
    min_capacity: int
    max_capacity: int
    enable_service_discovery: bool
    enable_logging: bool
    enable_fargate_spot: bool


REGION = "ap-northeast-1"
REGION_AZS = ("ap-northeast-1a", "ap-northeast-1c", "ap-northeast-1d")

# Valid Fargate task sizes: CPU units -> allowed memory (MiB)
FARGATE_TASK_SIZES: Dict[int, Tuple[int, ...]] = {
    256: (512, 1024, 2048),
    512: tuple(range(1024, 4096 + 1, 1024)),
    1024: tuple(range(2048, 8192 + 1, 1024)),
    2048: tuple(range(4096, 16384 + 1, 1024)),
    4096: tuple(range(8192, 30720 + 1, 1024)),
    8192: tuple(range(16384, 61440 + 1, 4096)),
    16384: tuple(range(32768, 122880 + 1, 8192)),
}

_KEEP_5 = (ImageLifecycleRule("Keep only 5 latest images", 1, "any", max_image_count=5),)

ENVIRONMENT_PROFILES: Dict[Environment, EnvironmentProfile] = {
    Environment.DEV: EnvironmentProfile(
        environment=Environment.DEV,
        name="development",
        vpc_cidr="10.0.0.0/16",
        az_count=2,
        enable_nat_gateway=True,
        enable_flow_logs=False,
        allow_ssh_access=True,
        restricted_cidrs=("10.0.0.0/8",),  # internal network only
        isolate_data_tier=False,
        region=REGION,
        availability_zones=REGION_AZS[:2],
        database=DatabaseProfile(
            instance_count=1,
            instance_class="t3.medium",
            backup_retention_days=1,
            monitoring_interval_seconds=60,
            deletion_protection=False,
        ),
        cache=CacheProfile(node_type="cache.t3.micro", node_count=1, snapshot_retention_days=1),
        logs=LogProfile(retention_days=3, image_lifecycle=_KEEP_5),
        autoscaling=AutoscalingProfile(cpu_target_percent=80, memory_target_percent=90),
        tags={
            "Environment": "development",
            "Project": "PracticeService",
            "Owner": "DevTeam",
            "CostCenter": "Development",
        },
    ),
    Environment.STAGING: EnvironmentProfile(
        environment=Environment.STAGING,
        name="staging",
        vpc_cidr="10.1.0.0/16",
        az_count=2,
        enable_nat_gateway=True,
        enable_flow_logs=True,
        allow_ssh_access=False,
        restricted_cidrs=("10.1.0.0/16",),
        isolate_data_tier=False,
        region=REGION,
        availability_zones=REGION_AZS[:2],
        database=DatabaseProfile(
            instance_count=2,
            instance_class="t3.large",
            backup_retention_days=7,
            monitoring_interval_seconds=60,
            deletion_protection=False,
        ),
        cache=CacheProfile(node_type="cache.t3.small", node_count=2, snapshot_retention_days=3),
        logs=LogProfile(
            retention_days=7,
            image_lifecycle=(
                ImageLifecycleRule("Keep only 10 latest images", 1, "any", max_image_count=10),
            ),
        ),
        autoscaling=AutoscalingProfile(cpu_target_percent=80, memory_target_percent=90),
        tags={
            "Environment": "staging",
            "Project": "PracticeService",
            "Owner": "DevOpsTeam",
            "CostCenter": "Testing",
        },
    ),
    Environment.PROD: EnvironmentProfile(
        environment=Environment.PROD,
        name="production",
        vpc_cidr="10.2.0.0/16",
        az_count=3,  # 3 AZs in production
        enable_nat_gateway=True,
        enable_flow_logs=True,
        allow_ssh_access=False,
        restricted_cidrs=("10.2.0.0/16",),
        isolate_data_tier=True,
        region=REGION,
        availability_zones=REGION_AZS,
        database=DatabaseProfile(
            instance_count=3,
            instance_class="r6g.large",
            backup_retention_days=30,
            monitoring_interval_seconds=30,
            deletion_protection=True,
        ),
        cache=CacheProfile(node_type="cache.r6g.large", node_count=3, snapshot_retention_days=7),
        logs=LogProfile(
            retention_days=30,
            image_lifecycle=(
                ImageLifecycleRule(
                    "Keep tagged images for 30 days",
                    1,
                    "tagged",
                    max_image_age_days=30,
                    tag_prefixes=("v", "prod", "stable"),
                ),
                ImageLifecycleRule(
                    "Keep untagged images for 1 day", 2, "untagged", max_image_age_days=1
                ),
            ),
        ),
        autoscaling=AutoscalingProfile(
            cpu_target_percent=70,
            memory_target_percent=80,
            request_count_steps=(
                StepBand(upper=100, change=-1),
                StepBand(lower=200, change=1),
                StepBand(lower=400, change=2),
            ),
        ),
        tags={
            "Environment": "production",
            "Project": "PracticeService",
            "Owner": "ProductionTeam",
            "CostCenter": "Production",
            "Backup": "Required",
        },
    ),
}

COMPUTE_PROFILES: Dict[Environment, ComputeProfile] = {
    Environment.DEV: ComputeProfile(
        cpu=256,
        memory_mib=512,
        desired_count=1,
        min_capacity=1,
        max_capacity=3,
        enable_service_discovery=False,
        enable_logging=True,
        enable_fargate_spot=True,
    ),
    Environment.STAGING: ComputeProfile(
        cpu=512,
        memory_mib=1024,
        desired_count=2,
        min_capacity=1,
        max_capacity=6,
        enable_service_discovery=False,
        enable_logging=True,
        enable_fargate_spot=True,
    ),
    Environment.PROD: ComputeProfile(
        cpu=1024,
        memory_mib=2048,
        desired_count=4,
        min_capacity=2,
        max_capacity=20,
        enable_service_discovery=True,
        enable_logging=True,
        enable_fargate_spot=False,  # on-demand only in production
    ),
}

DEFAULT_COMPUTE_PROFILE = ComputeProfile(
    cpu=256,
    memory_mib=512,
    desired_count=1,
    min_capacity=1,
    max_capacity=2,
    enable_service_discovery=False,
    enable_logging=True,
    enable_fargate_spot=True,
)


def list_recognized_environments() -> Tuple[str, ...]:
    return tuple(env.value for env in Environment)


def is_valid_environment(name: str) -> bool:
    return name in list_recognized_environments()


def resolve_environment(name: Optional[Union[str, Environment]]) -> EnvironmentProfile:
    """
    Look up the profile for an environment key.

    An empty or missing key resolves to DEFAULT_ENVIRONMENT; this is the only
    place that default is applied. Any other unrecognised key raises
    UnknownEnvironmentError.
    """
    if not name:
        name = DEFAULT_ENVIRONMENT
    return ENVIRONMENT_PROFILES[Environment.parse(name)]


def resolve_compute(name: Optional[Union[str, Environment]]) -> ComputeProfile:
    """
    Look up the compute sizing for an environment key.

    Unlike resolve_environment, unrecognised keys fall back to
    DEFAULT_COMPUTE_PROFILE instead of failing.
    """
    try:
        return COMPUTE_PROFILES[Environment.parse(name)]
    except UnknownEnvironmentError:
        logger.warning("No compute profile for %r, using default profile", name)
        return DEFAULT_COMPUTE_PROFILE


def validate_compute(profile: ComputeProfile) -> None:
    allowed = FARGATE_TASK_SIZES.get(profile.cpu, ())
    if profile.memory_mib not in allowed:
        raise IncompatibleComputeError(
            f"{profile.memory_mib} MiB is not a valid memory size for {profile.cpu} CPU units"
        )
    if not profile.min_capacity <= profile.desired_count <= profile.max_capacity:
        raise ConfigurationError(
            f"desired count {profile.desired_count} is outside "
            f"[{profile.min_capacity}, {profile.max_capacity}]"
        )


def get_network_settings() -> NetworkSettings:
    # Same subnet layout for every environment
    return NetworkSettings()
