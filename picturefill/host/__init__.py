"""Host platform boundary.

Boundary rules:
- The selection core depends only on the Protocols in ``interface``.
- Document walking, measurement, media matching and timers are injected.
- ``memory`` and ``scheduler`` provide concrete, deterministic implementations.
"""

from .interface import Host, ImageNode, Node, PicturefillError, Scheduler, TimerHandle
from .memory import Document, Element, InMemoryHost, TextNode, img, picture, source
from .scheduler import ManualScheduler, ThreadingScheduler

__all__ = [
    "Document",
    "Element",
    "Host",
    "ImageNode",
    "InMemoryHost",
    "ManualScheduler",
    "Node",
    "PicturefillError",
    "Scheduler",
    "TextNode",
    "ThreadingScheduler",
    "TimerHandle",
    "img",
    "picture",
    "source",
]
