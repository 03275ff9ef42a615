"""Tag grammar — decode/encode alarm settings carried in resource tags."""

from src.tags.grammar import (
    SUPPRESS_MARKERS,
    decode,
    encode,
    format_number,
    is_extended_statistic,
    is_valid_statistic,
    normalize_period,
)

__all__ = [
    "SUPPRESS_MARKERS",
    "decode",
    "encode",
    "format_number",
    "is_extended_statistic",
    "is_valid_statistic",
    "normalize_period",
]
