"""AWS provisioners, one per resource kind."""

from clusteroperator.resources.aws.clients import AWSClients, ClientsFactory, open_clients
from clusteroperator.resources.aws.elb import Listener, LoadBalancer
from clusteroperator.resources.aws.gateway import Gateway, GatewayNotFoundError
from clusteroperator.resources.aws.iam import InstanceProfile, Policy, Role
from clusteroperator.resources.aws.instance import Instance, find_instances, terminate_instances
from clusteroperator.resources.aws.keypair import KeyPair
from clusteroperator.resources.aws.kms import KMSEncryptor, KMSKey
from clusteroperator.resources.aws.route53 import HostedZone, RecordSet
from clusteroperator.resources.aws.s3 import Bucket, BucketObject
from clusteroperator.resources.aws.security_group import SecurityGroup
from clusteroperator.resources.aws.subnet import Subnet
from clusteroperator.resources.aws.vpc import VPC

__all__ = [
    "AWSClients",
    "Bucket",
    "BucketObject",
    "ClientsFactory",
    "Gateway",
    "GatewayNotFoundError",
    "HostedZone",
    "Instance",
    "InstanceProfile",
    "KMSEncryptor",
    "KMSKey",
    "KeyPair",
    "Listener",
    "LoadBalancer",
    "Policy",
    "RecordSet",
    "Role",
    "SecurityGroup",
    "Subnet",
    "VPC",
    "find_instances",
    "open_clients",
    "terminate_instances",
]
