from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Protocol


class PicturefillError(RuntimeError):
    """Raised for API misuse at the library boundary, never for bad markup."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class Node(Protocol):
    """A node of the host document.

    ``node_type`` follows the DOM numbering: 1 for elements, 3 for text.
    ``node_name`` is the upper-case tag name for elements.
    """

    node_type: int
    node_name: str
    parent: Optional["Node"]
    children: List["Node"]

    def get_attribute(self, name: str) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def set_attribute(self, name: str, value: str) -> None:  # pragma: no cover - protocol
        ...

    def remove_attribute(self, name: str) -> None:  # pragma: no cover - protocol
        ...

    def insert_before(self, node: "Node", reference: Optional["Node"]) -> None:  # pragma: no cover - protocol
        """Move ``node`` under this node, ahead of ``reference`` (append if None)."""
        ...

    def remove_child(self, node: "Node") -> None:  # pragma: no cover - protocol
        ...


class ImageNode(Node, Protocol):
    """Image placeholder whose rendered resource is being chosen.

    ``srcset`` mirrors the srcset attribute the way a native image property
    would; ``current_src`` mirrors the resource actually in effect.
    """

    src: str
    current_src: str
    srcset: str
    natural_width: int
    complete: bool
    style: Dict[str, str]


class TimerHandle(Protocol):
    """Cancellation token for a scheduled callback."""

    def cancel(self) -> None:  # pragma: no cover - protocol
        ...


class Scheduler(Protocol):
    """Fixed-delay, fire-once timers."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:  # pragma: no cover - protocol
        ...


class Host(Protocol):
    """Platform capabilities consumed by the selection core.

    Implementations answer questions about the current viewport and document;
    they never decide which candidate wins.
    """

    srcset_supported: bool
    sizes_supported: bool

    def supports_picture(self) -> bool:  # pragma: no cover - protocol
        """True when the platform resolves picture containers natively."""
        ...

    def supports_svg(self) -> bool:  # pragma: no cover - protocol
        """Synchronous feature check backing the image/svg+xml entry."""
        ...

    def matches_media(self, media: str) -> bool:  # pragma: no cover - protocol
        ...

    def measure_length(self, length: str) -> float:  # pragma: no cover - protocol
        """Convert a CSS length to pixels.

        Must fall back to the full viewport width when the length renders to
        zero or less (typically an unsupported ``calc()``).
        """
        ...

    def device_pixel_ratio(self) -> float:  # pragma: no cover - protocol
        ...

    def restricts_mixed_content(self) -> bool:  # pragma: no cover - protocol
        """True when the document was served over a secure transport."""
        ...

    def load_probe_image(
        self,
        data_uri: str,
        on_load: Callable[[int], None],
        on_error: Callable[[], None],
    ) -> None:  # pragma: no cover - protocol
        """Start loading ``data_uri``; report decoded width or failure later."""
        ...

    def force_layout(self, node: ImageNode) -> None:  # pragma: no cover - protocol
        """Read a layout property so pending style changes are applied."""
        ...

    def images(self) -> Iterable[ImageNode]:  # pragma: no cover - protocol
        """All image nodes of the document in document order."""
        ...

    def add_resize_listener(self, callback: Callable[[], None]) -> None:  # pragma: no cover - protocol
        ...

    def remove_resize_listener(self, callback: Callable[[], None]) -> None:  # pragma: no cover - protocol
        ...
