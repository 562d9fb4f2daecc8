#!/usr/bin/env python3
import logging
import os
from typing import Mapping, Optional, Tuple

import aws_cdk as cdk
from stacks.network_stack import NetworkStack
from stacks.storage_stack import StorageStack
from stacks.application_stack import ApplicationStack
from config.environments import ConfigurationError, EnvironmentProfile, resolve_environment

logger = logging.getLogger(__name__)


def deploy_environment(profile: EnvironmentProfile, environ: Mapping[str, str]) -> cdk.Environment:
    """
    Account and region for the stacks, from CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION.

    An environment-agnostic stack only gets two AZs, and the availability
    zone names in the profile belong to its region, so both are required
    to match the profile.
    """
    account = environ.get("CDK_DEFAULT_ACCOUNT")
    region = environ.get("CDK_DEFAULT_REGION") or profile.region
    if not account:
        raise ConfigurationError("CDK_DEFAULT_ACCOUNT is not set")
    if region != profile.region:
        raise ConfigurationError(
            f"{profile.environment.value} is defined for region {profile.region}, "
            f"got CDK_DEFAULT_REGION={region}"
        )
    return cdk.Environment(account=account, region=region)


def build_stacks(
    app: cdk.App,
    environment: Optional[str],
    env: Optional[cdk.Environment] = None,
    test_mode: bool = False,
    vpc_id: Optional[str] = None,
) -> Tuple[NetworkStack, StorageStack, ApplicationStack]:
    """Create Network -> Storage -> Application and declare their ordering"""
    profile = resolve_environment(environment)

    network_stack = NetworkStack(
        app,
        "NetworkStack",
        environment=profile.environment,
        env=env,
        description=f"Service network ({profile.name})",
    )

    # VPC, subnets and security groups come from the network stack exports
    storage_stack = StorageStack(
        app,
        "StorageStack",
        environment=profile.environment,
        vpc_id=vpc_id,
        test_mode=test_mode,
        env=env,
        description=f"Service data stores ({profile.name})",
    )

    # Database and cache endpoints come from the storage stack exports
    application_stack = ApplicationStack(
        app,
        "ApplicationStack",
        environment=profile.environment,
        vpc_id=vpc_id,
        test_mode=test_mode,
        env=env,
        description=f"Service ECS Fargate application ({profile.name})",
    )

    # Stack dependencies
    storage_stack.add_dependency(network_stack)
    application_stack.add_dependency(storage_stack)

    return network_stack, storage_stack, application_stack


def main():
    app = cdk.App()

    logging.basicConfig(
        level=str(app.node.try_get_context("log_level") or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Get environment from context; the resolver applies the default
    environment = app.node.try_get_context("environment")
    profile = resolve_environment(environment)
    test_mode = str(app.node.try_get_context("test_mode") or "false").lower() == "true"

    env = deploy_environment(profile, os.environ)
    logger.info("Building infrastructure for environment: %s", profile.environment.value)

    build_stacks(
        app,
        profile.environment,
        env=env,
        test_mode=test_mode,
        vpc_id=app.node.try_get_context("vpc_id"),
    )

    app.synth()


if __name__ == "__main__":
    main()
