"""Source matching inside a picture container.

Walks the container's children in document order and returns the first
``source`` declaration whose media condition holds and whose type is
supported. The image placeholder itself terminates the walk, so only
declarations ahead of it are considered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from ..host.interface import ImageNode, Node
from ..support.registry import MimeSupportRegistry, SupportStatus

logger = logging.getLogger(__name__)

ELEMENT_NODE = 1

SRC_ON_SOURCE_WARNING = (
    "The `src` attribute is invalid on `picture` `source` element; instead, use `srcset`."
)


class MatchOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    PENDING = "pending"


@dataclass(frozen=True)
class SourceMatch:
    """Result of walking a container for one placeholder."""

    outcome: MatchOutcome
    source: Optional[Node] = None

    @property
    def found(self) -> bool:
        return self.outcome is MatchOutcome.FOUND

    @property
    def pending(self) -> bool:
        return self.outcome is MatchOutcome.PENDING


NOT_FOUND = SourceMatch(MatchOutcome.NOT_FOUND)
PENDING = SourceMatch(MatchOutcome.PENDING)


def _descendants(node: Node, tag: str) -> Iterator[Node]:
    """Elements named ``tag`` below ``node``, in document order."""
    for child in node.children:
        if child.node_type == ELEMENT_NODE and child.node_name == tag:
            yield child
        yield from _descendants(child, tag)


def remove_video_shim(container: Node) -> None:
    """Unwrap ``source`` declarations hidden inside a ``video`` element.

    Legacy markup wraps sources in a video element so old engines keep them.
    The first video found anywhere in the container is unwrapped: every
    source below it is moved ahead of the wrapper, which is then removed.
    """
    video = next(_descendants(container, "VIDEO"), None)
    if video is None:
        return

    parent = video.parent
    sources = list(_descendants(video, "SOURCE"))
    for declaration in sources:
        parent.insert_before(declaration, video)
    parent.remove_child(video)
    logger.debug("Unwrapped %d sources from video shim", len(sources))


def match_source(
    placeholder: ImageNode,
    container: Node,
    media_match: Callable[[str], bool],
    registry: MimeSupportRegistry,
) -> SourceMatch:
    """Find the declaration whose srcset should drive ``placeholder``.

    Args:
        placeholder: The image node being resolved
        container: Its picture container
        media_match: Media condition capability
        registry: MIME support registry; may start an asynchronous probe

    Returns:
        FOUND with the declaration, NOT_FOUND to fall back to the
        placeholder's own attributes, or PENDING while a type probe is
        outstanding
    """
    for child in list(container.children):
        if child.node_type != ELEMENT_NODE:
            continue

        if child is placeholder:
            return NOT_FOUND

        if child.node_name != "SOURCE":
            continue

        if child.get_attribute("src") is not None:
            logger.warning(SRC_ON_SOURCE_WARNING)

        if not child.get_attribute("srcset"):
            continue

        media = child.get_attribute("media")
        if media and not media_match(media):
            continue

        support = registry.verify(child.get_attribute("type"))
        if support is SupportStatus.SUPPORTED:
            logger.debug("Matched source %s", child.get_attribute("srcset"))
            return SourceMatch(MatchOutcome.FOUND, child)
        if support is SupportStatus.PENDING:
            logger.debug("Source type %s pending", child.get_attribute("type"))
            return PENDING

    return NOT_FOUND
