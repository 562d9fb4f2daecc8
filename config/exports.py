"""
Export names shared between the Network, Storage and Application stacks.

Every CloudFormation export and Fn::ImportValue key in this project is built
by export_name(), so producers and consumers always agree on the key. Keys
use the short environment key: Service-dev-VpcId, Service-prod-Aurora-Endpoint.
Changing this format breaks imports in already deployed environments.
"""
from typing import Union

from config.environments import Environment

EXPORT_PREFIX = "Service"

# Network stack
VPC_ID = "VpcId"
PUBLIC_SUBNET_IDS = "PublicSubnetIds"
PRIVATE_SUBNET_IDS = "PrivateSubnetIds"
ISOLATED_SUBNET_IDS = "IsolatedSubnetIds"
PUBLIC_ROUTE_TABLE_IDS = "PublicRouteTableIds"
PRIVATE_ROUTE_TABLE_IDS = "PrivateRouteTableIds"
ISOLATED_ROUTE_TABLE_IDS = "IsolatedRouteTableIds"
EDGE_SECURITY_GROUP_ID = "ALB-SG-Id"
APP_SECURITY_GROUP_ID = "ECS-SG-Id"
DATA_SECURITY_GROUP_ID = "RDS-SG-Id"

# Storage stack
AURORA_ENDPOINT = "Aurora-Endpoint"
AURORA_READER_ENDPOINT = "Aurora-Reader-Endpoint"
AURORA_SECRET_ARN = "Aurora-Secret-Arn"
REDIS_ENDPOINT = "Redis-Endpoint"
STATIC_BUCKET = "Static-Bucket"
LOGS_BUCKET = "Logs-Bucket"
BACKUPS_BUCKET = "Backups-Bucket"

# Application stack
ECR_URI = "ECR-URI"
ALB_DNS = "ALB-DNS"
ALB_ARN = "ALB-ARN"
TARGET_GROUP_ARN = "TG-ARN"
CLUSTER_NAME = "Cluster-Name"
SERVICE_NAME = "Service-Name"
APP_URL = "App-URL"
SERVICE_DISCOVERY_ARN = "SD-ARN"
INTERNAL_DNS = "Internal-DNS"

SECURITY_GROUP_EXPORTS = {
    "edge": EDGE_SECURITY_GROUP_ID,
    "app": APP_SECURITY_GROUP_ID,
    "data": DATA_SECURITY_GROUP_ID,
}


def export_name(environment: Union[str, Environment], purpose: str) -> str:
    env = Environment.parse(environment)
    return f"{EXPORT_PREFIX}-{env.value}-{purpose}"
