"""Microsyntax parsing for srcset and sizes values.

Pure functions only: no host access, no state between calls.
"""

from .descriptors import DEFAULT_RESOLUTION, resolve_descriptor
from .sizes import (
    DEFAULT_LENGTH,
    SizeEntry,
    find_winning_length,
    normalize_length,
    parse_size,
    parse_sizes,
    resolve_width,
)
from .tokenizer import RawCandidate, parse_srcset

__all__ = [
    "DEFAULT_LENGTH",
    "DEFAULT_RESOLUTION",
    "RawCandidate",
    "SizeEntry",
    "find_winning_length",
    "normalize_length",
    "parse_size",
    "parse_sizes",
    "parse_srcset",
    "resolve_descriptor",
    "resolve_width",
]
