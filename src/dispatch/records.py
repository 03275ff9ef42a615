"""SQS message → EventRecord parsing.

Each SQS message body is an EventBridge event of one of three shapes:

- ``aws.tag`` "Tag Change on Resource": ARN in ``resources``, the full
  post-change tag map in ``detail.tags``.
- ``aws.ec2`` "EC2 Instance State-change Notification": instance id and
  ``state`` in ``detail``.
- "AWS API Call via CloudTrail" for ``Create*`` / ``Delete*`` calls: the
  resource ARN somewhere in ``responseElements`` or ``requestParameters``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterator
from typing import Any

from src.core.types import EventKind, EventRecord
from src.dispatch.exceptions import RecordParseError

_CLOUDTRAIL_DETAIL_TYPE = "AWS API Call via CloudTrail"
_QUEUE_URL_RE = re.compile(
    r"^https://sqs\.(?P<region>[\w-]+)\.amazonaws\.com(?:\.cn)?/(?P<account>\d+)/(?P<name>[^/?]+)$"
)
_LEGACY_QUEUE_URL_RE = re.compile(
    r"^https://(?P<region>[\w-]+)\.queue\.amazonaws\.com/(?P<account>\d+)/(?P<name>[^/?]+)$"
)


def queue_url_to_arn(url: str) -> str | None:
    """``https://sqs.us-east-1.amazonaws.com/123/q`` → ``arn:aws:sqs:us-east-1:123:q``."""
    match = _QUEUE_URL_RE.match(url) or _LEGACY_QUEUE_URL_RE.match(url)
    if match is None:
        return None
    return f"arn:aws:sqs:{match['region']}:{match['account']}:{match['name']}"


def _candidate_identifiers(node: Any) -> Iterator[str]:
    """Every ARN (or queue URL, as an ARN) nested anywhere in ``node``."""
    if isinstance(node, str):
        if node.startswith("arn:"):
            yield node
        elif node.startswith("https://"):
            arn = queue_url_to_arn(node)
            if arn is not None:
                yield arn
    elif isinstance(node, dict):
        for value in node.values():
            yield from _candidate_identifiers(value)
    elif isinstance(node, list):
        for value in node:
            yield from _candidate_identifiers(value)


def _pick(candidates: Iterator[str], accept: Callable[[str], bool] | None) -> str | None:
    first: str | None = None
    for candidate in candidates:
        if accept is None or accept(candidate):
            return candidate
        if first is None:
            first = candidate
    return first


def _tag_change(event: dict[str, Any]) -> tuple[EventKind, str, dict[str, str], str | None]:
    resources = event.get("resources") or []
    if not resources:
        raise RecordParseError("Tag change event has no resources")
    tags = (event.get("detail") or {}).get("tags") or {}
    return EventKind.TAG_CHANGE, resources[0], {str(k): str(v) for k, v in tags.items()}, None


def _ec2_state_change(event: dict[str, Any]) -> tuple[EventKind, str, dict[str, str], str | None]:
    detail = event.get("detail") or {}
    instance_id = detail.get("instance-id")
    if not instance_id:
        raise RecordParseError("EC2 state change event has no instance-id")
    resources = event.get("resources") or []
    identifier = resources[0] if resources else instance_id
    return EventKind.STATE_CHANGE, identifier, {}, detail.get("state")


def _api_call(
    event: dict[str, Any], accept: Callable[[str], bool] | None
) -> tuple[EventKind, str, dict[str, str], str | None]:
    detail = event.get("detail") or {}
    name = detail.get("eventName", "")
    if name.startswith("Create"):
        kind = EventKind.CREATE
    elif name.startswith("Delete"):
        kind = EventKind.DELETE
    else:
        raise RecordParseError(f"Unsupported API call {name!r}")

    def candidates() -> Iterator[str]:
        yield from _candidate_identifiers(detail.get("responseElements"))
        yield from _candidate_identifiers(detail.get("requestParameters"))

    identifier = _pick(candidates(), accept)
    if identifier is None:
        raise RecordParseError(f"No resource identifier in {name} event")
    return kind, identifier, {}, None


def parse_event(
    source_id: str,
    event: dict[str, Any],
    accept: Callable[[str], bool] | None = None,
) -> EventRecord:
    """Parse one EventBridge event.

    Args:
        source_id: Identifier reported back on failure.
        event: The decoded event.
        accept: Optional predicate preferring identifiers a resource type
            recognises when an API call response carries several ARNs.
    """
    source = event.get("source")
    detail_type = event.get("detail-type")

    if source == "aws.tag":
        kind, identifier, tags, state = _tag_change(event)
    elif source == "aws.ec2" and detail_type != _CLOUDTRAIL_DETAIL_TYPE:
        kind, identifier, tags, state = _ec2_state_change(event)
    elif detail_type == _CLOUDTRAIL_DETAIL_TYPE:
        kind, identifier, tags, state = _api_call(event, accept)
    else:
        raise RecordParseError(f"Unsupported event source={source!r} detail-type={detail_type!r}")

    return EventRecord(
        source_id=source_id,
        event_kind=kind,
        resource_identifier=identifier,
        tags=tags,
        state=state,
        raw=event,
    )


def parse_sqs_record(
    record: dict[str, Any], accept: Callable[[str], bool] | None = None
) -> EventRecord:
    """Parse one record of an SQS-triggered Lambda event."""
    message_id = record.get("messageId")
    if not message_id:
        raise RecordParseError("SQS record has no messageId")
    try:
        event = json.loads(record.get("body") or "")
    except json.JSONDecodeError as exc:
        raise RecordParseError(f"Message {message_id} body is not JSON: {exc}") from exc
    if not isinstance(event, dict):
        raise RecordParseError(f"Message {message_id} body is not an object")
    return parse_event(message_id, event, accept)
