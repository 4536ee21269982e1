"""Sizes-list evaluation.

Turns a ``sizes`` value such as ``"(min-width: 40em) 50vw, 100vw"`` into a
layout width in CSS pixels. Media conditions and length measurement are host
capabilities handed in by the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .numeric import leading_float

logger = logging.getLogger(__name__)

DEFAULT_LENGTH = "100vw"

_ENTRY_SPLIT = re.compile(r"\s*,\s*")

MediaMatch = Callable[[str], bool]
Measure = Callable[[str], float]


@dataclass(frozen=True)
class SizeEntry:
    """One sizes-list entry: an optional media condition and a length."""

    condition: Optional[str]
    length_expr: Optional[str]


def _split_condition(entry: str) -> Tuple[Optional[str], str]:
    """Split a leading balanced ``( ... )`` group off an entry.

    The condition keeps its outer parentheses so it can be handed to a media
    matcher unchanged. Without a leading group, or when the group is never
    closed, the whole entry is the length.
    """
    if not entry.startswith("("):
        return None, entry

    depth = 0
    for index, char in enumerate(entry):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return entry[:index + 1], entry[index + 1:]
    return None, entry


def parse_size(source_size: str) -> SizeEntry:
    """Parse one entry, e.g. ``"(max-width: 30em) 100vw"``."""
    condition, rest = _split_condition(source_size)
    length = rest.strip() or None
    return SizeEntry(condition=condition, length_expr=length)


def parse_sizes(sizes: Optional[str]) -> List[SizeEntry]:
    """Parse a full sizes-list into entries, preserving order."""
    text = (sizes or "").strip()
    if not text:
        return []
    return [parse_size(entry) for entry in _ENTRY_SPLIT.split(text)]


def find_winning_length(sizes: Optional[str], media_match: MediaMatch) -> Optional[str]:
    """Return the length of the first entry that applies.

    An entry applies when it has no condition or its condition matches.
    Entries without a length are skipped, and nothing after the winner is
    evaluated.
    """
    for entry in parse_sizes(sizes):
        if not entry.length_expr:
            continue
        if not entry.condition or media_match(entry.condition):
            logger.debug(
                "Sizes entry won: condition=%s length=%s",
                entry.condition,
                entry.length_expr,
            )
            return entry.length_expr
    return None


def normalize_length(length: Optional[str], default: str = DEFAULT_LENGTH) -> str:
    """Prepare a length for measurement.

    A length is kept only if it has no percentage and is either a positive
    number or a ``calc(`` expression; everything else becomes ``default``.
    Viewport units are rewritten to percentages because measurement happens
    against an element at the top of the document.
    """
    usable = (
        bool(length)
        and "%" not in length
        and (leading_float(length) > 0 or "calc(" in length)
    )
    chosen = length if usable else default
    return chosen.replace("vw", "%")


def resolve_width(
    sizes: Optional[str],
    media_match: MediaMatch,
    measure: Measure,
    default: str = DEFAULT_LENGTH,
) -> float:
    """Resolve a sizes-list to a pixel width.

    Args:
        sizes: Raw sizes attribute, None when absent (treated as ``default``)
        media_match: Returns True when a media condition currently holds
        measure: Converts a CSS length to pixels; must itself fall back to the
            viewport width when the length cannot be rendered
        default: Length used when no entry applies

    Returns:
        Layout width in CSS pixels
    """
    winning = find_winning_length(sizes or default, media_match)
    length = normalize_length(winning, default)
    width = measure(length)
    logger.debug("Resolved sizes=%r to %s via %r", sizes, width, length)
    return width
