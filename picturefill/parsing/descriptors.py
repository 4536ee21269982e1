"""Descriptor resolution: raw descriptor text to a pixel-density value."""

from __future__ import annotations

import logging
import math
from typing import Optional

from .numeric import is_positive, leading_float, leading_int

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 1.0


def resolve_descriptor(
    descriptor: Optional[str],
    width_px: float,
    sizes_supported: bool = False,
) -> float:
    """Convert one descriptor into a resolution (device-pixel-ratio units).

    Tokens are inspected from last to first and every recognized token
    overwrites the running value, so the leftmost recognized token decides.

    - ``<n>w`` / ``<n>h``: ``n / width_px``, unless the host handles width
      descriptors natively (``sizes_supported``), in which case it is ignored
    - ``<n>x``: ``n`` directly; a zero or unreadable number counts as 1

    Args:
        descriptor: Raw descriptor text from the tokenizer
        width_px: Layout width resolved from the sizes-list
        sizes_supported: Whether the host resolves w/h descriptors itself

    Returns:
        A strictly positive resolution, 1 when nothing usable was found
    """
    text = (descriptor or "").strip()
    if not text:
        return DEFAULT_RESOLUTION

    resolution: Optional[float] = None
    for token in reversed(text.split()):
        suffix = token[-1:]
        if suffix in ("w", "h") and not sizes_supported:
            pixels = leading_int(token)
            resolution = pixels / width_px if is_positive(width_px) else math.nan
        elif suffix == "x":
            value = leading_float(token)
            resolution = value if is_positive(value) else DEFAULT_RESOLUTION

    if resolution is None or not is_positive(resolution):
        if resolution is not None:
            logger.debug("Unusable descriptor %r, using default resolution", descriptor)
        return DEFAULT_RESOLUTION
    return resolution
