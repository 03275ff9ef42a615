"""boto3 client construction shared by the backend wrappers."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from src.core.config import AwsConfig


def make_client(service: str, config: AwsConfig) -> Any:
    """Build a boto3 client using the standard (bounded, jittered) retry mode."""
    boto_config = BotoConfig(
        retries={"max_attempts": config.max_attempts, "mode": "standard"},
        connect_timeout=config.connect_timeout_secs,
        read_timeout=config.read_timeout_secs,
    )
    return boto3.client(service, region_name=config.region, config=boto_config)
