"""Resource-type registry — identifier classification in priority order.

Each ResourceType pairs an identifier pattern with its MetricAlarmConfig
table, the CloudWatch dimensions its metrics are keyed by and the API its
tags are read from. One generic engine drives every type.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog

from src.alarms import configs
from src.alarms.builder import service_prefix
from src.core.types import Dimension, MetricAlarmConfig, ResourceRef
from src.resources.exceptions import UnsupportedResourceError

logger = structlog.stdlib.get_logger()

_ARN = r"arn:aws[\w-]*:"
_REGION_ACCOUNT = r"(?P<region>[\w-]*):(?P<account>\d*):"


class TagApi:
    """Which AWS API a resource type's tags are read from."""

    EC2 = "ec2"
    ELBV2 = "elbv2"
    SQS = "sqs"
    OPENSEARCH = "opensearch"
    RDS = "rds"
    CLOUDFRONT = "cloudfront"
    ROUTE53_RESOLVER = "route53resolver"


DimensionBuilder = Callable[[re.Match[str]], tuple[Dimension, ...]]


def _dims(*pairs: tuple[str, str]) -> DimensionBuilder:
    """Dimensions taken from named regex groups: ``(dimension, group)``."""

    def build(match: re.Match[str]) -> tuple[Dimension, ...]:
        return tuple(Dimension(name=name, value=match.group(group)) for name, group in pairs)

    return build


@dataclass(frozen=True)
class ResourceType:
    """A supported resource type.

    ``pattern`` must define an ``id`` group; that value names the
    resource's alarms.
    """

    service: str
    pattern: re.Pattern[str]
    configs: tuple[MetricAlarmConfig, ...]
    dimensions: DimensionBuilder
    tag_api: str

    def matches(self, identifier: str) -> bool:
        return self.pattern.search(identifier) is not None

    def resolve(self, identifier: str, alarm_prefix: str = "AutoAlarm") -> ResourceRef:
        match = self.pattern.search(identifier)
        if match is None:
            raise UnsupportedResourceError(f"{identifier!r} is not a {self.service} resource")
        return ResourceRef(
            service=self.service,
            resource_id=match.group("id"),
            arn=identifier,
            dimensions=self.dimensions(match),
            rule_root=service_prefix(alarm_prefix, self.service),
        )


# ── Resource types ───────────────────────────────────────────────

TARGET_GROUP = ResourceType(
    service="TargetGroup",
    pattern=re.compile(
        rf"^{_ARN}elasticloadbalancing:{_REGION_ACCOUNT}(?P<id>targetgroup/[^/]+/[0-9a-f]+)$"
    ),
    configs=configs.TARGET_GROUP_CONFIGS,
    dimensions=_dims(("TargetGroup", "id")),
    tag_api=TagApi.ELBV2,
)

ALB = ResourceType(
    service="ALB",
    pattern=re.compile(
        rf"^{_ARN}elasticloadbalancing:{_REGION_ACCOUNT}loadbalancer/(?P<id>app/[^/]+/[0-9a-f]+)$"
    ),
    configs=configs.ALB_CONFIGS,
    dimensions=_dims(("LoadBalancer", "id")),
    tag_api=TagApi.ELBV2,
)

TRANSIT_GATEWAY = ResourceType(
    service="TransitGateway",
    pattern=re.compile(rf"^{_ARN}ec2:{_REGION_ACCOUNT}transit-gateway/(?P<id>tgw-[0-9a-f]+)$"),
    configs=configs.TRANSIT_GATEWAY_CONFIGS,
    dimensions=_dims(("TransitGateway", "id")),
    tag_api=TagApi.EC2,
)

VPN = ResourceType(
    service="VPN",
    pattern=re.compile(rf"^{_ARN}ec2:{_REGION_ACCOUNT}vpn-connection/(?P<id>vpn-[0-9a-f]+)$"),
    configs=configs.VPN_CONFIGS,
    dimensions=_dims(("VpnId", "id")),
    tag_api=TagApi.EC2,
)

# Accepts the instance ARN or a bare instance id (EC2 state-change events
# carry only the id).
EC2 = ResourceType(
    service="EC2",
    pattern=re.compile(
        rf"^(?:{_ARN}ec2:{_REGION_ACCOUNT}instance/)?(?P<id>i-[0-9a-f]+)$"
    ),
    configs=configs.EC2_CONFIGS,
    dimensions=_dims(("InstanceId", "id")),
    tag_api=TagApi.EC2,
)

SQS = ResourceType(
    service="SQS",
    pattern=re.compile(rf"^{_ARN}sqs:{_REGION_ACCOUNT}(?P<id>[\w-]+(?:\.fifo)?)$"),
    configs=configs.SQS_CONFIGS,
    dimensions=_dims(("QueueName", "id")),
    tag_api=TagApi.SQS,
)

OPENSEARCH = ResourceType(
    service="OpenSearch",
    pattern=re.compile(rf"^{_ARN}es:{_REGION_ACCOUNT}domain/(?P<id>[a-z][a-z0-9-]*)$"),
    configs=configs.OPENSEARCH_CONFIGS,
    dimensions=_dims(("DomainName", "id"), ("ClientId", "account")),
    tag_api=TagApi.OPENSEARCH,
)

RDS_CLUSTER = ResourceType(
    service="RDSCluster",
    pattern=re.compile(rf"^{_ARN}rds:{_REGION_ACCOUNT}cluster:(?P<id>[\w-]+)$"),
    configs=configs.RDS_CLUSTER_CONFIGS,
    dimensions=_dims(("DBClusterIdentifier", "id")),
    tag_api=TagApi.RDS,
)

RDS = ResourceType(
    service="RDS",
    pattern=re.compile(rf"^{_ARN}rds:{_REGION_ACCOUNT}db:(?P<id>[\w-]+)$"),
    configs=configs.RDS_CONFIGS,
    dimensions=_dims(("DBInstanceIdentifier", "id")),
    tag_api=TagApi.RDS,
)

CLOUDFRONT = ResourceType(
    service="CloudFront",
    pattern=re.compile(rf"^{_ARN}cloudfront::(?P<account>\d*):distribution/(?P<id>[A-Z0-9]+)$"),
    configs=configs.CLOUDFRONT_CONFIGS,
    dimensions=lambda m: (
        Dimension(name="DistributionId", value=m.group("id")),
        Dimension(name="Region", value="Global"),
    ),
    tag_api=TagApi.CLOUDFRONT,
)

ROUTE53_RESOLVER = ResourceType(
    service="Route53Resolver",
    pattern=re.compile(
        rf"^{_ARN}route53resolver:{_REGION_ACCOUNT}resolver-endpoint/(?P<id>rslvr-(?:in|out)-[0-9a-f]+)$"
    ),
    configs=configs.ROUTE53_RESOLVER_CONFIGS,
    dimensions=_dims(("EndpointId", "id")),
    tag_api=TagApi.ROUTE53_RESOLVER,
)

# Nested identifiers come before the broader type they live under.
DEFAULT_RESOURCE_TYPES: tuple[ResourceType, ...] = (
    TARGET_GROUP,
    ALB,
    TRANSIT_GATEWAY,
    VPN,
    EC2,
    SQS,
    OPENSEARCH,
    RDS_CLUSTER,
    RDS,
    CLOUDFRONT,
    ROUTE53_RESOLVER,
)


class ResourceRegistry:
    """Priority-ordered list of resource types."""

    def __init__(
        self,
        types: Iterable[ResourceType] = DEFAULT_RESOURCE_TYPES,
        alarm_prefix: str = "AutoAlarm",
    ) -> None:
        self._types = tuple(types)
        self._alarm_prefix = alarm_prefix

    @property
    def types(self) -> tuple[ResourceType, ...]:
        return self._types

    def classify(self, identifier: str) -> ResourceType | None:
        """First resource type whose pattern matches ``identifier``."""
        for resource_type in self._types:
            if resource_type.matches(identifier):
                return resource_type
        return None

    def resolve(self, identifier: str) -> tuple[ResourceType, ResourceRef]:
        resource_type = self.classify(identifier)
        if resource_type is None:
            raise UnsupportedResourceError(f"No resource type matches {identifier!r}")
        return resource_type, resource_type.resolve(identifier, self._alarm_prefix)
