import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from app import build_stacks, deploy_environment
from config.environments import ConfigurationError, resolve_environment

PINNED_ENV = cdk.Environment(account="123456789012", region="ap-northeast-1")


def collect_imports(node):
    """All Fn::ImportValue names referenced anywhere in a template"""
    found = set()
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "Fn::ImportValue" and isinstance(value, str):
                found.add(value)
            else:
                found |= collect_imports(value)
    elif isinstance(node, list):
        for item in node:
            found |= collect_imports(item)
    return found


def collect_selects(node):
    """Highest Fn::Select index taken from each split list import"""
    found = {}
    if isinstance(node, dict):
        select = node.get("Fn::Select")
        if isinstance(select, list) and isinstance(select[1], dict) and "Fn::Split" in select[1]:
            source = select[1]["Fn::Split"][1]
            if isinstance(source, dict) and "Fn::ImportValue" in source:
                name = source["Fn::ImportValue"]
                found[name] = max(found.get(name, 0), select[0] + 1)
        for value in node.values():
            for name, arity in collect_selects(value).items():
                found[name] = max(found.get(name, 0), arity)
    elif isinstance(node, list):
        for item in node:
            for name, arity in collect_selects(item).items():
                found[name] = max(found.get(name, 0), arity)
    return found


def list_export_lengths(template):
    """Item count of every comma-joined list export"""
    lengths = {}
    for output in template.find_outputs("*").values():
        value = output["Value"]
        if "Export" in output and isinstance(value, dict) and "Fn::Join" in value:
            lengths[output["Export"]["Name"]] = len(value["Fn::Join"][1])
    return lengths


def collect_exports(template):
    return {
        output["Export"]["Name"]
        for output in template.find_outputs("*").values()
        if "Export" in output
    }


def synth_all(environment, env=None, test_mode=False):
    app = cdk.App()
    stacks = build_stacks(app, environment, env=env, test_mode=test_mode)
    return stacks, [Template.from_stack(stack) for stack in stacks]


class TestEndToEnd:
    """Synthesize Network -> Storage -> Application together"""

    @pytest.fixture(scope="class")
    def dev(self):
        return synth_all("dev")

    def test_resource_counts(self, dev):
        _, (network, storage, application) = dev

        network.resource_count_is("AWS::EC2::VPC", 1)
        network.resource_count_is("AWS::EC2::SecurityGroup", 3)
        storage.resource_count_is("AWS::RDS::DBCluster", 1)
        storage.resource_count_is("AWS::RDS::DBInstance", 1)
        storage.resource_count_is("AWS::ElastiCache::ReplicationGroup", 1)
        storage.has_resource_properties(
            "AWS::ElastiCache::ReplicationGroup",
            {"NumCacheClusters": 1, "AutomaticFailoverEnabled": False},
        )
        storage.resource_count_is("AWS::S3::Bucket", 3)
        application.resource_count_is("AWS::ECS::Cluster", 1)
        application.resource_count_is("AWS::ECS::TaskDefinition", 1)
        application.resource_count_is("AWS::ECS::Service", 1)
        application.resource_count_is("AWS::ElasticLoadBalancingV2::LoadBalancer", 1)

        task = next(iter(application.find_resources("AWS::ECS::TaskDefinition").values()))
        assert len(task["Properties"]["ContainerDefinitions"]) == 2

    def test_only_network_stack_owns_network(self, dev):
        _, (_, storage, application) = dev

        for template in (storage, application):
            template.resource_count_is("AWS::EC2::VPC", 0)
            template.resource_count_is("AWS::EC2::SecurityGroup", 0)

    def test_stack_ordering(self, dev):
        (network, storage, application), _ = dev

        assert network in storage.dependencies
        assert storage in application.dependencies

    @pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
    def test_every_import_is_exported(self, environment):
        _, templates = synth_all(environment, env=PINNED_ENV)

        exported = set()
        for template in templates:
            exported |= collect_exports(template)

        imported = set()
        for template in templates:
            imported |= collect_imports(template.to_json())

        assert imported
        assert imported <= exported, sorted(imported - exported)

    @pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
    def test_exports_share_one_prefix(self, environment):
        _, templates = synth_all(environment, env=PINNED_ENV)

        for template in templates:
            for name in collect_exports(template):
                assert name.startswith(f"Service-{environment}-")

    def test_test_mode_needs_no_network_exports(self):
        _, (_, storage, application) = synth_all("staging", test_mode=True)

        assert collect_imports(storage.to_json()) == set()
        assert collect_imports(application.to_json()) == set()

    def test_empty_environment_builds_dev(self):
        (network, _, _), _ = synth_all(None)

        assert network.environment_key == "dev"

    @pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
    def test_list_imports_fit_exported_lists(self, environment):
        _, templates = synth_all(environment, env=PINNED_ENV)

        lengths = {}
        for template in templates:
            lengths.update(list_export_lengths(template))

        selected = {}
        for template in templates[1:]:
            selected.update(collect_selects(template.to_json()))

        assert selected
        for name, arity in selected.items():
            assert arity == resolve_environment(environment).az_count
            assert arity <= lengths[name], name

    def test_prod_without_account_fails(self):
        app = cdk.App()

        with pytest.raises(ConfigurationError):
            build_stacks(app, "prod", env=cdk.Environment(account=None, region="ap-northeast-1"))


class TestDeployEnvironment:
    """Test account and region selection for main()"""

    def test_account_and_region(self):
        env = deploy_environment(
            resolve_environment("prod"),
            {"CDK_DEFAULT_ACCOUNT": "123456789012", "CDK_DEFAULT_REGION": "ap-northeast-1"},
        )

        assert env.account == "123456789012"
        assert env.region == "ap-northeast-1"

    def test_region_defaults_to_profile(self):
        env = deploy_environment(resolve_environment("dev"), {"CDK_DEFAULT_ACCOUNT": "123456789012"})

        assert env.region == "ap-northeast-1"

    def test_missing_account_fails(self):
        with pytest.raises(ConfigurationError, match="CDK_DEFAULT_ACCOUNT"):
            deploy_environment(resolve_environment("prod"), {"CDK_DEFAULT_REGION": "ap-northeast-1"})

    def test_other_region_fails(self):
        with pytest.raises(ConfigurationError, match="us-east-1"):
            deploy_environment(
                resolve_environment("staging"),
                {"CDK_DEFAULT_ACCOUNT": "123456789012", "CDK_DEFAULT_REGION": "us-east-1"},
            )
