"""Dispatch exceptions."""

from __future__ import annotations


class DispatchError(Exception):
    """Base exception for dispatch errors."""


class RecordParseError(DispatchError):
    """An inbound record could not be turned into an EventRecord."""
