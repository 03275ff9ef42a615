"""Static MetricAlarmConfig tables, one per supported resource type.

Static defaults use the full layout
``warning/critical/period/evaluationPeriods/statistic/dataPointsToAlarm/comparisonOperator/missingData``;
anomaly defaults use
``statistic/period/evaluationPeriods/bandWidth/dataPointsToAlarm/comparisonOperator/missingData``.
"""

from __future__ import annotations

from src.core.types import MetricAlarmConfig

_EC2_CPU_QUERY = (
    '100 - (avg by (instance_id) (rate(node_cpu_seconds_total{mode="idle",'
    'instance_id="$resource_id"}[5m])) * 100)'
)
_EC2_MEMORY_QUERY = (
    '100 * (1 - node_memory_MemAvailable_bytes{instance_id="$resource_id"}'
    ' / node_memory_MemTotal_bytes{instance_id="$resource_id"})'
)

EC2_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="cpu",
        metric_name="CPUUtilization",
        metric_namespace="AWS/EC2",
        default_create=True,
        is_anomaly=False,
        default_options="95/98/300/2/Maximum/2/GreaterThanThreshold/ignore",
        prometheus_query=_EC2_CPU_QUERY,
    ),
    MetricAlarmConfig(
        tag_key="cpu-anomaly",
        metric_name="CPUUtilization",
        metric_namespace="AWS/EC2",
        default_create=False,
        is_anomaly=True,
        default_options="p90/60/2/2/2/GreaterThanUpperThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="memory",
        metric_name="mem_used_percent",
        metric_namespace="CWAgent",
        default_create=True,
        is_anomaly=False,
        default_options="90/95/300/2/Maximum/2/GreaterThanThreshold/ignore",
        prometheus_query=_EC2_MEMORY_QUERY,
    ),
    # CWAgent filesystem metrics: one alarm per path (Linux) or per logical
    # disk (Windows). Only the platform's own metric has streams to find.
    MetricAlarmConfig(
        tag_key="storage",
        metric_name="disk_used_percent",
        metric_namespace="CWAgent",
        default_create=True,
        is_anomaly=False,
        default_options="80/90/60/5/Maximum/5/GreaterThanThreshold/ignore",
        dimension_key="path",
    ),
    MetricAlarmConfig(
        tag_key="storage-free",
        metric_name="LogicalDisk % Free Space",
        metric_namespace="CWAgent",
        default_create=True,
        is_anomaly=False,
        default_options="20/10/60/5/Minimum/5/LessThanThreshold/ignore",
        dimension_key="instance",
    ),
    MetricAlarmConfig(
        tag_key="status-check",
        metric_name="StatusCheckFailed",
        metric_namespace="AWS/EC2",
        default_create=True,
        is_anomaly=False,
        default_options="-/0/300/1/Maximum/1/GreaterThanThreshold/breaching",
    ),
)

ALB_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="4xx-count",
        metric_name="HTTPCode_ELB_4XX_Count",
        metric_namespace="AWS/ApplicationELB",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/60/2/Sum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="5xx-count",
        metric_name="HTTPCode_ELB_5XX_Count",
        metric_namespace="AWS/ApplicationELB",
        default_create=True,
        is_anomaly=False,
        default_options="10000/15000/60/2/Sum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="request-count-anomaly",
        metric_name="RequestCount",
        metric_namespace="AWS/ApplicationELB",
        default_create=False,
        is_anomaly=True,
        default_options="Sum/300/2/2/2/LessThanLowerOrGreaterThanUpperThreshold/ignore",
    ),
)

TARGET_GROUP_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="unhealthy-host-count",
        metric_name="UnHealthyHostCount",
        metric_namespace="AWS/ApplicationELB",
        default_create=True,
        is_anomaly=False,
        default_options="-/0/60/2/Maximum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="response-time",
        metric_name="TargetResponseTime",
        metric_namespace="AWS/ApplicationELB",
        default_create=True,
        is_anomaly=False,
        default_options="3/5/300/2/p90/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="5xx-count",
        metric_name="HTTPCode_Target_5XX_Count",
        metric_namespace="AWS/ApplicationELB",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/60/2/Sum/2/GreaterThanThreshold/ignore",
    ),
)

SQS_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="messages-visible",
        metric_name="ApproximateNumberOfMessagesVisible",
        metric_namespace="AWS/SQS",
        default_create=True,
        is_anomaly=False,
        default_options="500/1000/300/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="age-of-oldest-message",
        metric_name="ApproximateAgeOfOldestMessage",
        metric_namespace="AWS/SQS",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/300/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="messages-sent-anomaly",
        metric_name="NumberOfMessagesSent",
        metric_namespace="AWS/SQS",
        default_create=False,
        is_anomaly=True,
        default_options="Sum/300/2/2/2/LessThanLowerOrGreaterThanUpperThreshold/ignore",
    ),
)

OPENSEARCH_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="cpu",
        metric_name="CPUUtilization",
        metric_namespace="AWS/ES",
        default_create=True,
        is_anomaly=False,
        default_options="90/95/300/2/Maximum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="jvm-memory",
        metric_name="JVMMemoryPressure",
        metric_namespace="AWS/ES",
        default_create=True,
        is_anomaly=False,
        default_options="85/92/300/2/Maximum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="free-storage",
        metric_name="FreeStorageSpace",
        metric_namespace="AWS/ES",
        default_create=True,
        is_anomaly=False,
        default_options="10000/5000/300/2/Minimum/2/LessThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="cluster-red",
        metric_name="ClusterStatus.red",
        metric_namespace="AWS/ES",
        default_create=True,
        is_anomaly=False,
        default_options="-/0/60/1/Maximum/1/GreaterThanThreshold/breaching",
    ),
    MetricAlarmConfig(
        tag_key="cluster-yellow",
        metric_name="ClusterStatus.yellow",
        metric_namespace="AWS/ES",
        default_create=True,
        is_anomaly=False,
        default_options="0/-/300/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
)

RDS_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="cpu",
        metric_name="CPUUtilization",
        metric_namespace="AWS/RDS",
        default_create=True,
        is_anomaly=False,
        default_options="90/95/600/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="freeable-memory",
        metric_name="FreeableMemory",
        metric_namespace="AWS/RDS",
        default_create=True,
        is_anomaly=False,
        default_options="512000000/256000000/300/2/Minimum/2/LessThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="write-latency",
        metric_name="WriteLatency",
        metric_namespace="AWS/RDS",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/300/2/p90/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="db-connections-anomaly",
        metric_name="DatabaseConnections",
        metric_namespace="AWS/RDS",
        default_create=False,
        is_anomaly=True,
        default_options="Maximum/300/2/2/2/GreaterThanUpperThreshold/ignore",
    ),
)

RDS_CLUSTER_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="cpu",
        metric_name="CPUUtilization",
        metric_namespace="AWS/RDS",
        default_create=True,
        is_anomaly=False,
        default_options="90/95/600/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="replica-lag",
        metric_name="AuroraReplicaLagMaximum",
        metric_namespace="AWS/RDS",
        default_create=True,
        is_anomaly=False,
        default_options="1000/2000/120/1/Maximum/1/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="db-connections-anomaly",
        metric_name="DatabaseConnections",
        metric_namespace="AWS/RDS",
        default_create=False,
        is_anomaly=True,
        default_options="Maximum/300/2/2/2/GreaterThanUpperThreshold/ignore",
    ),
)

CLOUDFRONT_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="5xx-error-rate",
        metric_name="5xxErrorRate",
        metric_namespace="AWS/CloudFront",
        default_create=True,
        is_anomaly=False,
        default_options="1/5/300/2/Average/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="4xx-error-rate",
        metric_name="4xxErrorRate",
        metric_namespace="AWS/CloudFront",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/300/2/Average/2/GreaterThanThreshold/ignore",
    ),
)

ROUTE53_RESOLVER_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="inbound-query-volume-anomaly",
        metric_name="InboundQueryVolume",
        metric_namespace="AWS/Route53Resolver",
        default_create=False,
        is_anomaly=True,
        default_options="Sum/300/2/2/2/LessThanLowerOrGreaterThanUpperThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="outbound-query-volume-anomaly",
        metric_name="OutboundQueryVolume",
        metric_namespace="AWS/Route53Resolver",
        default_create=False,
        is_anomaly=True,
        default_options="Sum/300/2/2/2/LessThanLowerOrGreaterThanUpperThreshold/ignore",
    ),
)

TRANSIT_GATEWAY_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="packet-drop-no-route",
        metric_name="PacketDropCountNoRoute",
        metric_namespace="AWS/TransitGateway",
        default_create=False,
        is_anomaly=False,
        default_options="-/-/300/2/Sum/2/GreaterThanThreshold/ignore",
    ),
    MetricAlarmConfig(
        tag_key="bytes-in-anomaly",
        metric_name="BytesIn",
        metric_namespace="AWS/TransitGateway",
        default_create=False,
        is_anomaly=True,
        default_options="Sum/300/2/2/2/LessThanLowerOrGreaterThanUpperThreshold/ignore",
    ),
)

VPN_CONFIGS: tuple[MetricAlarmConfig, ...] = (
    MetricAlarmConfig(
        tag_key="tunnel-state",
        metric_name="TunnelState",
        metric_namespace="AWS/VPN",
        default_create=True,
        is_anomaly=False,
        default_options="-/1/300/3/Maximum/3/LessThanThreshold/breaching",
    ),
)
