"""Resource classification and tag lookup."""

from src.resources.exceptions import ResourceError, TagFetchError, UnsupportedResourceError
from src.resources.registry import (
    DEFAULT_RESOURCE_TYPES,
    ResourceRegistry,
    ResourceType,
    TagApi,
)
from src.resources.tags import TagFetcher

__all__ = [
    "DEFAULT_RESOURCE_TYPES",
    "ResourceError",
    "ResourceRegistry",
    "ResourceType",
    "TagApi",
    "TagFetchError",
    "TagFetcher",
    "UnsupportedResourceError",
]
