"""Event classification and batch dispatch."""

from src.dispatch.dispatcher import BatchDispatcher, BatchStats, RecordHandler, RecordOutcome
from src.dispatch.engine import AlarmEngine, ResourceAlarmHandler, action_for
from src.dispatch.exceptions import DispatchError, RecordParseError
from src.dispatch.factory import create_dispatcher
from src.dispatch.records import parse_event, parse_sqs_record, queue_url_to_arn

__all__ = [
    "AlarmEngine",
    "BatchDispatcher",
    "BatchStats",
    "DispatchError",
    "RecordHandler",
    "RecordOutcome",
    "RecordParseError",
    "ResourceAlarmHandler",
    "action_for",
    "create_dispatcher",
    "parse_event",
    "parse_sqs_record",
    "queue_url_to_arn",
]
