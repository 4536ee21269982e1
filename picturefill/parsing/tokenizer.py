"""Descriptor-list (srcset) tokenizer.

Splits a srcset value into URLs paired with their raw, unparsed descriptor
text. Malformed segments are dropped without complaint.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

_LEADING_WS = re.compile(r"^\s+")
_WS = re.compile(r"\s")
_TRAILING_COMMAS = re.compile(r",+$")


@dataclass(frozen=True)
class RawCandidate:
    """One srcset entry before its descriptor is interpreted.

    ``descriptor`` is None only when no descriptor text followed the URL and
    no comma forced an empty descriptor.
    """

    url: str
    descriptor: Optional[str] = None


def parse_srcset(srcset: Optional[str]) -> List[RawCandidate]:
    """Parse a srcset string into raw candidates, left to right.

    Example:
        parse_srcset("a.jpg 1x, b.jpg 2x")
        # [RawCandidate("a.jpg", "1x"), RawCandidate("b.jpg", "2x")]

    Args:
        srcset: Raw descriptor-list text

    Returns:
        Candidates in source order; empty for empty or whitespace-only input
    """
    candidates: List[RawCandidate] = []
    remaining = srcset or ""

    while remaining != "":
        remaining = _LEADING_WS.sub("", remaining)

        descriptor: Optional[str] = None
        split = _WS.search(remaining)

        if split is not None:
            pos = split.start()
            url = remaining[:pos]

            # A URL glued to its comma has no descriptors
            if url.endswith(",") or url == "":
                url = _TRAILING_COMMAS.sub("", url)
                descriptor = ""
            remaining = remaining[pos + 1:]

            if descriptor is None:
                comma = remaining.find(",")
                if comma != -1:
                    descriptor = remaining[:comma]
                    remaining = remaining[comma + 1:]
                else:
                    descriptor = remaining
                    remaining = ""
        else:
            url = remaining
            remaining = ""

        if url or descriptor:
            candidates.append(RawCandidate(url=url, descriptor=descriptor))

    logger.debug("Parsed %d srcset candidates", len(candidates))
    return candidates
