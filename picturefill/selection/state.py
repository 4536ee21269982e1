"""Per-placeholder side table.

State lives beside the host nodes rather than on them. Entries are weakly
keyed, and can also be dropped explicitly once a node leaves the document,
which cancels any intrinsic-width polling still scheduled for it.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

from ..host.interface import ImageNode, TimerHandle

logger = logging.getLogger(__name__)


@dataclass
class PlaceholderState:
    """Evaluation state for one image placeholder.

    ``cached_srcset`` holds the native srcset value captured (and cleared on
    the node) so native resolution cannot override the computed choice. It is
    set at most once. ``written_width`` remembers the last intrinsic width
    written, to tell it apart from an author-supplied width.
    """

    evaluated: bool = False
    cached_srcset: Optional[str] = None
    written_width: Optional[str] = None
    backfill: Optional[TimerHandle] = None

    def cancel_backfill(self) -> None:
        if self.backfill is not None:
            self.backfill.cancel()
            self.backfill = None


class PlaceholderTable:
    """Side table keyed by node identity."""

    def __init__(self) -> None:
        self._entries: "weakref.WeakKeyDictionary[ImageNode, PlaceholderState]" = (
            weakref.WeakKeyDictionary()
        )
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, node: ImageNode) -> bool:
        with self._lock:
            return node in self._entries

    def get(self, node: ImageNode) -> Optional[PlaceholderState]:
        with self._lock:
            return self._entries.get(node)

    def ensure(self, node: ImageNode) -> PlaceholderState:
        """Return the node's entry, creating an empty one if needed."""
        with self._lock:
            state = self._entries.get(node)
            if state is None:
                state = PlaceholderState()
                self._entries[node] = state
            return state

    def items(self) -> Iterator[Tuple[ImageNode, PlaceholderState]]:
        with self._lock:
            return iter(list(self._entries.items()))

    def forget(self, node: ImageNode) -> bool:
        """Drop a node's entry and cancel its polling.

        Returns:
            True if an entry existed
        """
        with self._lock:
            state = self._entries.pop(node, None)
        if state is None:
            return False
        state.cancel_backfill()
        logger.debug("Forgot placeholder %r", node)
        return True

    def prune(self, is_attached: Callable[[ImageNode], bool]) -> int:
        """Forget every node for which ``is_attached`` is False.

        Returns:
            Number of entries removed
        """
        detached = [node for node, _ in self.items() if not is_attached(node)]
        for node in detached:
            self.forget(node)
        if detached:
            logger.debug("Pruned %d detached placeholders", len(detached))
        return len(detached)

    def counts(self) -> Dict[str, int]:
        """Tracked, evaluated and pending (not yet evaluated) entry counts."""
        with self._lock:
            states = list(self._entries.values())
        evaluated = sum(1 for state in states if state.evaluated)
        return {
            "tracked": len(states),
            "evaluated": evaluated,
            "pending": len(states) - evaluated,
        }

    def clear(self) -> None:
        """Cancel all polling and drop every entry."""
        with self._lock:
            states = list(self._entries.values())
            self._entries.clear()
        for state in states:
            state.cancel_backfill()
