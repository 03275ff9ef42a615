"""Resource classification and tag lookup exceptions."""

from __future__ import annotations


class ResourceError(Exception):
    """Base exception for resource errors."""


class TagFetchError(ResourceError):
    """Tags for a resource could not be read."""


class UnsupportedResourceError(ResourceError):
    """No resource type recognises the identifier."""
