import pytest

from config import exports
from config.environments import Environment, UnknownEnvironmentError


class TestExportNames:
    def test_format(self):
        assert exports.export_name("dev", exports.VPC_ID) == "Service-dev-VpcId"

    def test_uses_short_environment_key(self):
        assert exports.export_name(Environment.PROD, exports.AURORA_ENDPOINT) == (
            "Service-prod-Aurora-Endpoint"
        )
        assert exports.export_name("staging", exports.APP_SECURITY_GROUP_ID) == (
            "Service-staging-ECS-SG-Id"
        )

    def test_long_name_is_rejected(self):
        with pytest.raises(UnknownEnvironmentError):
            exports.export_name("production", exports.VPC_ID)

    def test_security_group_exports_cover_every_tier(self):
        assert set(exports.SECURITY_GROUP_EXPORTS) == {"edge", "app", "data"}
