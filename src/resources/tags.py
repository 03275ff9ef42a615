"""Tag lookup for every supported resource type."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.core.aws import make_client
from src.core.config import AwsConfig, get_settings
from src.core.types import ResourceRef
from src.resources.exceptions import TagFetchError
from src.resources.registry import TagApi

logger = structlog.stdlib.get_logger()


def _pairs_to_dict(pairs: list[dict[str, str]] | None) -> dict[str, str]:
    return {p["Key"]: p.get("Value", "") for p in pairs or []}


class TagFetcher:
    """Reads a resource's current tags from the owning service.

    Failures raise TagFetchError. Returning an empty map instead would make
    the engine retire every alarm the resource has.
    """

    def __init__(self, aws_config: AwsConfig | None = None) -> None:
        self._aws = aws_config or get_settings().aws
        self._clients: dict[str, Any] = {}
        # boto3 client creation is not thread-safe.
        self._clients_lock = threading.Lock()
        self._readers: dict[str, Callable[[ResourceRef], dict[str, str]]] = {
            TagApi.EC2: self._ec2_tags,
            TagApi.ELBV2: self._elbv2_tags,
            TagApi.SQS: self._sqs_tags,
            TagApi.OPENSEARCH: self._opensearch_tags,
            TagApi.RDS: self._rds_tags,
            TagApi.CLOUDFRONT: self._cloudfront_tags,
            TagApi.ROUTE53_RESOLVER: self._route53resolver_tags,
        }

    def _client(self, service: str) -> Any:
        with self._clients_lock:
            client = self._clients.get(service)
            if client is None:
                client = self._clients[service] = make_client(service, self._aws)
            return client

    async def fetch(self, resource: ResourceRef, tag_api: str) -> dict[str, str]:
        reader = self._readers.get(tag_api)
        if reader is None:
            raise TagFetchError(f"No tag reader for {tag_api!r}")
        try:
            tags = await asyncio.to_thread(reader, resource)
        except (ClientError, BotoCoreError, KeyError, IndexError) as exc:
            raise TagFetchError(
                f"Fetching tags for {resource.service} {resource.resource_id} failed: {exc}"
            ) from exc
        logger.debug(
            "tags_fetched",
            service=resource.service,
            resource_id=resource.resource_id,
            tag_count=len(tags),
        )
        return tags

    # ── Per-service readers (run in a worker thread) ─────────────

    def _ec2_tags(self, resource: ResourceRef) -> dict[str, str]:
        paginator = self._client("ec2").get_paginator("describe_tags")
        tags: dict[str, str] = {}
        filters = [{"Name": "resource-id", "Values": [resource.resource_id]}]
        for page in paginator.paginate(Filters=filters):
            tags.update(_pairs_to_dict(page.get("Tags")))
        return tags

    def _elbv2_tags(self, resource: ResourceRef) -> dict[str, str]:
        resp = self._client("elbv2").describe_tags(ResourceArns=[resource.arn])
        descriptions = resp.get("TagDescriptions") or []
        if not descriptions:
            return {}
        return _pairs_to_dict(descriptions[0].get("Tags"))

    def _sqs_tags(self, resource: ResourceRef) -> dict[str, str]:
        # arn:aws:sqs:<region>:<account>:<queue>
        account = resource.arn.split(":")[4]
        sqs = self._client("sqs")
        kwargs: dict[str, str] = {"QueueName": resource.resource_id}
        if account:
            kwargs["QueueOwnerAWSAccountId"] = account
        queue_url = sqs.get_queue_url(**kwargs)["QueueUrl"]
        return dict(sqs.list_queue_tags(QueueUrl=queue_url).get("Tags") or {})

    def _opensearch_tags(self, resource: ResourceRef) -> dict[str, str]:
        resp = self._client("opensearch").list_tags(ARN=resource.arn)
        return _pairs_to_dict(resp.get("TagList"))

    def _rds_tags(self, resource: ResourceRef) -> dict[str, str]:
        resp = self._client("rds").list_tags_for_resource(ResourceName=resource.arn)
        return _pairs_to_dict(resp.get("TagList"))

    def _cloudfront_tags(self, resource: ResourceRef) -> dict[str, str]:
        resp = self._client("cloudfront").list_tags_for_resource(Resource=resource.arn)
        return _pairs_to_dict((resp.get("Tags") or {}).get("Items"))

    def _route53resolver_tags(self, resource: ResourceRef) -> dict[str, str]:
        client = self._client("route53resolver")
        tags: dict[str, str] = {}
        kwargs: dict[str, str] = {"ResourceArn": resource.arn}
        while True:
            resp = client.list_tags_for_resource(**kwargs)
            tags.update(_pairs_to_dict(resp.get("Tags")))
            token = resp.get("NextToken")
            if not token:
                return tags
            kwargs["NextToken"] = token
