"""In-memory document and host.

A small node tree plus a deterministic ``Host`` implementation. Useful for
tests and for embedders that resolve responsive images outside a browser,
e.g. when pre-rendering markup for a known viewport.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Union

logger = logging.getLogger(__name__)

ELEMENT_NODE = 1
TEXT_NODE = 3
DOCUMENT_NODE = 9

_LENGTH_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))(px|%|em)\s*$")
_MEDIA_FEATURE_RE = re.compile(
    r"^\(\s*(min|max)-width\s*:\s*([+-]?(?:\d+\.?\d*|\.\d+))(px|em)\s*\)$"
)


class _BaseNode:
    node_type = 0
    node_name = ""

    def __init__(self) -> None:
        self.parent: Optional[_BaseNode] = None
        self.children: List[_BaseNode] = []

    def append_child(self, node: "_BaseNode") -> "_BaseNode":
        return self.insert_before(node, None)

    def insert_before(self, node: "_BaseNode", reference: Optional["_BaseNode"]) -> "_BaseNode":
        if node.parent is not None:
            node.parent.remove_child(node)
        if reference is None:
            self.children.append(node)
        else:
            self.children.insert(self.children.index(reference), node)
        node.parent = self
        return node

    def remove_child(self, node: "_BaseNode") -> None:
        self.children.remove(node)
        node.parent = None

    def iter(self) -> Iterator["_BaseNode"]:
        """Descendants in document order, excluding self."""
        for child in self.children:
            yield child
            yield from child.iter()

    @property
    def is_connected(self) -> bool:
        node: Optional[_BaseNode] = self
        while node is not None:
            if node.node_type == DOCUMENT_NODE:
                return True
            node = node.parent
        return False


class TextNode(_BaseNode):
    node_type = TEXT_NODE
    node_name = "#text"

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data

    def get_attribute(self, name: str) -> Optional[str]:
        return None


class Element(_BaseNode):
    """Element node with attributes and the image properties the core reads.

    ``src`` and ``srcset`` reflect their attributes. ``natural_width`` and
    ``complete`` stand in for the decoded image and are set by the embedder.
    """

    node_type = ELEMENT_NODE

    def __init__(
        self,
        tag: str,
        attributes: Optional[Dict[str, str]] = None,
        children: Iterable[_BaseNode] = (),
        natural_width: int = 0,
        complete: bool = True,
    ) -> None:
        super().__init__()
        self.node_name = tag.upper()
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.current_src = ""
        self.natural_width = natural_width
        self.complete = complete
        self.style: Dict[str, str] = {}
        for child in children:
            self.append_child(child)

    def __repr__(self) -> str:
        return f"<Element {self.node_name.lower()} {self.attributes!r}>"

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: object) -> None:
        self.attributes[name] = str(value)

    def remove_attribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    @property
    def src(self) -> str:
        return self.attributes.get("src", "")

    @src.setter
    def src(self, value: str) -> None:
        self.attributes["src"] = value

    @property
    def srcset(self) -> str:
        return self.attributes.get("srcset", "")

    @srcset.setter
    def srcset(self, value: str) -> None:
        self.attributes["srcset"] = value


class Document(_BaseNode):
    node_type = DOCUMENT_NODE
    node_name = "#document"

    def __init__(self, children: Iterable[_BaseNode] = ()) -> None:
        super().__init__()
        self.body = Element("body", children=children)
        self.append_child(Element("html", children=[self.body]))

    def images(self) -> List[Element]:
        return [node for node in self.iter() if node.node_name == "IMG"]


def img(attributes: Optional[Dict[str, str]] = None, **kwargs) -> Element:
    """Shorthand for an ``img`` element."""
    return Element("img", attributes, **kwargs)


def source(attributes: Optional[Dict[str, str]] = None) -> Element:
    """Shorthand for a ``source`` element."""
    return Element("source", attributes)


def picture(*children: _BaseNode) -> Element:
    """Shorthand for a ``picture`` element holding ``children``."""
    return Element("picture", children=children)


MediaSpec = Union[Callable[[str], bool], Iterable[str], None]


class InMemoryHost:
    """Deterministic host over a ``Document``.

    Media conditions: ``(min-width: N)`` and ``(max-width: N)`` in px or em,
    joined with ``and``, are evaluated against the viewport; any other
    condition matches only if listed in ``media``. Lengths in px, % and em are
    measured; everything else renders as zero and falls back to the viewport
    width.

    Image probes are queued until ``finish_probes`` is called, so the
    asynchronous path can be exercised step by step.
    """

    def __init__(
        self,
        document: Optional[Document] = None,
        *,
        viewport_width: float = 1024,
        dpr: float = 1.0,
        secure: bool = False,
        media: MediaSpec = None,
        font_size_px: float = 16,
        srcset_supported: bool = False,
        sizes_supported: bool = False,
        picture_supported: bool = False,
        svg_supported: bool = True,
        probe_widths: Optional[Dict[str, Optional[int]]] = None,
    ) -> None:
        self.document = document or Document()
        self.viewport_width = viewport_width
        self.dpr = dpr
        self.secure = secure
        self.font_size_px = font_size_px
        self.srcset_supported = srcset_supported
        self.sizes_supported = sizes_supported
        self.picture_supported = picture_supported
        self.svg_supported = svg_supported
        # data URI prefix -> decoded width, None meaning a decode error
        self.probe_widths: Dict[str, Optional[int]] = dict(probe_widths or {})
        self.layout_reads = 0
        self.measured: List[str] = []
        self._media_fn: Optional[Callable[[str], bool]] = None
        self._media_set: Set[str] = set()
        if callable(media):
            self._media_fn = media
        elif media is not None:
            self._media_set = set(media)
        self._pending_probes: List[tuple] = []
        self._resize_listeners: List[Callable[[], None]] = []

    def supports_picture(self) -> bool:
        return self.picture_supported

    def supports_svg(self) -> bool:
        return self.svg_supported

    def _match_feature(self, feature: str) -> Optional[bool]:
        match = _MEDIA_FEATURE_RE.match(feature.strip())
        if not match:
            return None
        kind, number, unit = match.groups()
        limit = float(number) * (self.font_size_px if unit == "em" else 1)
        if kind == "min":
            return self.viewport_width >= limit
        return self.viewport_width <= limit

    def matches_media(self, media: str) -> bool:
        if self._media_fn is not None:
            return bool(self._media_fn(media))
        if media in self._media_set:
            return True
        results = [self._match_feature(part) for part in media.split(" and ")]
        if any(result is None for result in results):
            return False
        return all(results)

    def measure_length(self, length: str) -> float:
        self.measured.append(length)
        pixels = 0.0
        match = _LENGTH_RE.match(length)
        if match:
            number, unit = float(match.group(1)), match.group(2)
            if unit == "px":
                pixels = number
            elif unit == "%":
                pixels = self.viewport_width * number / 100
            else:
                pixels = number * self.font_size_px
        if pixels <= 0:
            logger.debug("Length %r rendered to %s, using viewport width", length, pixels)
            return float(self.viewport_width)
        return pixels

    def device_pixel_ratio(self) -> float:
        return self.dpr or 1.0

    def restricts_mixed_content(self) -> bool:
        return self.secure

    def load_probe_image(
        self,
        data_uri: str,
        on_load: Callable[[int], None],
        on_error: Callable[[], None],
    ) -> None:
        self._pending_probes.append((data_uri, on_load, on_error))

    @property
    def pending_probes(self) -> int:
        return len(self._pending_probes)

    def finish_probes(self) -> int:
        """Complete every queued probe load; returns how many were completed."""
        probes, self._pending_probes = self._pending_probes, []
        for data_uri, on_load, on_error in probes:
            width = None
            for prefix, known in self.probe_widths.items():
                if data_uri.startswith(prefix):
                    width = known
                    break
            if width is None:
                on_error()
            else:
                on_load(width)
        return len(probes)

    def force_layout(self, node: Element) -> None:
        self.layout_reads += 1

    def images(self) -> List[Element]:
        return self.document.images()

    def add_resize_listener(self, callback: Callable[[], None]) -> None:
        self._resize_listeners.append(callback)

    def remove_resize_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._resize_listeners:
            self._resize_listeners.remove(callback)

    @property
    def resize_listeners(self) -> int:
        return len(self._resize_listeners)

    def resize(self, viewport_width: Optional[float] = None) -> None:
        """Change the viewport and signal every resize listener."""
        if viewport_width is not None:
            self.viewport_width = viewport_width
        for callback in list(self._resize_listeners):
            callback()
