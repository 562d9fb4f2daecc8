import pytest
from config.environments import (
    COMPUTE_PROFILES,
    DEFAULT_COMPUTE_PROFILE,
    ENVIRONMENT_PROFILES,
    FARGATE_TASK_SIZES,
    ComputeProfile,
    ConfigurationError,
    Environment,
    IncompatibleComputeError,
    UnknownEnvironmentError,
    get_network_settings,
    is_valid_environment,
    list_recognized_environments,
    resolve_compute,
    resolve_environment,
    validate_compute,
)


def _compute(cpu, memory, desired=1, minimum=1, maximum=2):
    return ComputeProfile(
        cpu=cpu,
        memory_mib=memory,
        desired_count=desired,
        min_capacity=minimum,
        max_capacity=maximum,
        enable_service_discovery=False,
        enable_logging=True,
        enable_fargate_spot=True,
    )


class TestEnvironmentConfig:
    """Test environment profile resolution"""

    def test_recognized_environments(self):
        assert list_recognized_environments() == ("dev", "staging", "prod")

    def test_tables_cover_every_environment(self):
        assert set(ENVIRONMENT_PROFILES) == set(Environment)
        assert set(COMPUTE_PROFILES) == set(Environment)

    @pytest.mark.parametrize(
        "key,name,az_count",
        [("dev", "development", 2), ("staging", "staging", 2), ("prod", "production", 3)],
    )
    def test_profile_values(self, key, name, az_count):
        profile = resolve_environment(key)

        assert profile.environment.value == key
        assert profile.name == name
        assert profile.az_count == az_count
        assert len(profile.availability_zones) == az_count
        assert profile.tags["Environment"] == name
        assert profile.tags["Project"] == "PracticeService"

    def test_vpc_cidrs_are_different(self):
        """Test VPC CIDRs don't overlap"""
        cidrs = [resolve_environment(env).vpc_cidr for env in list_recognized_environments()]

        assert len(set(cidrs)) == 3

    def test_only_production_isolates_data_tier(self):
        assert resolve_environment("prod").isolate_data_tier is True
        assert resolve_environment("staging").isolate_data_tier is False
        assert resolve_environment("dev").isolate_data_tier is False

    def test_production_config(self):
        profile = resolve_environment("prod")

        assert profile.is_production
        assert profile.database.deletion_protection is True
        assert profile.tags["Backup"] == "Required"
        assert profile.nat_gateway_count == 3

    def test_unknown_environment_fails(self):
        with pytest.raises(UnknownEnvironmentError, match="unknown environment: qa"):
            resolve_environment("qa")

    def test_long_name_is_not_an_environment_key(self):
        with pytest.raises(UnknownEnvironmentError):
            resolve_environment("production")

    def test_empty_environment_defaults_to_dev(self):
        assert resolve_environment("") is resolve_environment("dev")
        assert resolve_environment(None) is resolve_environment("dev")

    def test_accepts_enum_member(self):
        assert resolve_environment(Environment.STAGING) is resolve_environment("staging")

    def test_resolution_is_idempotent(self):
        for env in list_recognized_environments():
            assert resolve_environment(env) == resolve_environment(env)
            assert resolve_compute(env) == resolve_compute(env)

    def test_is_valid_environment(self):
        assert is_valid_environment("staging")
        assert not is_valid_environment("development")

    def test_network_settings(self):
        settings = get_network_settings()

        assert settings.subnet_cidr_mask == 24
        assert settings.enable_dns_hostnames is True
        assert settings.enable_dns_support is True


class TestTierScaling:
    """Test database and cache sizing by environment"""

    @pytest.mark.parametrize(
        "env,instances,readers,retention",
        [("dev", 1, 0, 1), ("staging", 2, 1, 7), ("prod", 3, 2, 30)],
    )
    def test_database_profile(self, env, instances, readers, retention):
        database = resolve_environment(env).database

        assert database.instance_count == instances
        assert database.reader_count == readers
        assert database.backup_retention_days == retention

    @pytest.mark.parametrize(
        "env,nodes,failover,snapshots",
        [("dev", 1, False, 1), ("staging", 2, True, 3), ("prod", 3, True, 7)],
    )
    def test_cache_failover_requires_replicas(self, env, nodes, failover, snapshots):
        cache = resolve_environment(env).cache

        assert cache.node_count == nodes
        assert cache.automatic_failover is failover
        assert cache.multi_az is failover
        assert cache.snapshot_retention_days == snapshots

    def test_autoscaling_thresholds(self):
        assert resolve_environment("prod").autoscaling.cpu_target_percent == 70
        assert resolve_environment("prod").autoscaling.memory_target_percent == 80
        for env in ("dev", "staging"):
            assert resolve_environment(env).autoscaling.cpu_target_percent == 80
            assert resolve_environment(env).autoscaling.memory_target_percent == 90
            assert resolve_environment(env).autoscaling.request_count_steps == ()

    def test_production_step_bands(self):
        steps = resolve_environment("prod").autoscaling.request_count_steps

        assert [step.change for step in steps] == [-1, 1, 2]
        assert steps[0].upper == 100
        assert [step.lower for step in steps[1:]] == [200, 400]


class TestComputeConfig:
    """Test compute profile resolution and validation"""

    @pytest.mark.parametrize(
        "env,cpu,memory,desired",
        [("dev", 256, 512, 1), ("staging", 512, 1024, 2), ("prod", 1024, 2048, 4)],
    )
    def test_compute_profiles(self, env, cpu, memory, desired):
        compute = resolve_compute(env)

        assert compute.cpu == cpu
        assert compute.memory_mib == memory
        assert compute.desired_count == desired
        validate_compute(compute)

    def test_service_discovery_and_spot(self):
        assert resolve_compute("prod").enable_service_discovery is True
        assert resolve_compute("prod").enable_fargate_spot is False
        assert resolve_compute("dev").enable_service_discovery is False
        assert resolve_compute("dev").enable_fargate_spot is True

    def test_unknown_environment_falls_back_to_default(self):
        # Deliberately lenient, unlike resolve_environment
        assert resolve_compute("qa") is DEFAULT_COMPUTE_PROFILE
        assert resolve_compute("") is DEFAULT_COMPUTE_PROFILE
        with pytest.raises(UnknownEnvironmentError):
            resolve_environment("qa")

    def test_every_table_pair_is_valid(self):
        for cpu, memories in FARGATE_TASK_SIZES.items():
            for memory in memories:
                validate_compute(_compute(cpu, memory))

    @pytest.mark.parametrize(
        "cpu,memory",
        [(256, 3072), (256, 4096), (512, 512), (1024, 1024), (300, 512), (4096, 31744)],
    )
    def test_incompatible_pairs(self, cpu, memory):
        with pytest.raises(IncompatibleComputeError):
            validate_compute(_compute(cpu, memory))

    def test_256_cpu_pairs(self):
        validate_compute(_compute(256, 512))
        validate_compute(_compute(256, 2048))

    def test_desired_count_outside_bounds(self):
        with pytest.raises(ConfigurationError):
            validate_compute(_compute(256, 512, desired=5, minimum=1, maximum=2))

    def test_incompatible_error_is_configuration_error(self):
        assert issubclass(IncompatibleComputeError, ConfigurationError)
        assert issubclass(UnknownEnvironmentError, ValueError)
