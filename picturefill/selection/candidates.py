"""Candidate building and best-candidate selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..parsing import DEFAULT_LENGTH, parse_srcset, resolve_descriptor, resolve_width

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCandidate:
    """A candidate URL with its resolution in device-pixel-ratio units."""

    url: str
    resolution: float


def build_candidates(
    srcset: Optional[str],
    sizes: Optional[str],
    media_match: Callable[[str], bool],
    measure: Callable[[str], float],
    sizes_supported: bool = False,
    default_length: str = DEFAULT_LENGTH,
) -> List[ResolvedCandidate]:
    """Tokenize ``srcset`` and resolve each descriptor against ``sizes``.

    The layout width is only measured when the srcset has entries.
    """
    raw = parse_srcset(srcset)
    if not raw:
        return []

    width = resolve_width(sizes, media_match, measure, default_length)
    return [
        ResolvedCandidate(
            url=candidate.url,
            resolution=resolve_descriptor(candidate.descriptor, width, sizes_supported),
        )
        for candidate in raw
    ]


def select_candidate(
    candidates: Sequence[ResolvedCandidate],
    device_pixel_ratio: float,
) -> Optional[ResolvedCandidate]:
    """Pick the smallest resolution that still covers the display density.

    Falls back to the highest resolution available when none covers it.
    Input order does not matter beyond breaking ties between equal
    resolutions (the earlier one wins).

    Returns:
        The chosen candidate, or None when there are no candidates
    """
    if not candidates:
        return None

    ordered = sorted(candidates, key=lambda candidate: candidate.resolution)
    best = ordered[-1]
    for candidate in ordered:
        if candidate.resolution >= device_pixel_ratio:
            best = candidate
            break

    logger.debug(
        "Selected %s (resolution=%s) for dpr=%s from %d candidates",
        best.url,
        best.resolution,
        device_pixel_ratio,
        len(ordered),
    )
    return best
