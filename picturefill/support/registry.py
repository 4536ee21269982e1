"""MIME type support registry.

Holds the support status of every MIME type a ``source`` declaration may
name. Types whose support is only known after an asynchronous check carry a
probe; the probe starts the first time the type is asked about, and its
resolution notifies listeners so pending placeholders can be re-evaluated.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from .. import config as pf_config
from ..host.interface import Host, PicturefillError

logger = logging.getLogger(__name__)

# Lossless 1x1 webp; decodes to width 1 where the format is supported
WEBP_PROBE_URI = "data:image/webp;base64,UklGRh4AAABXRUJQVlA4TBEAAAAvAAAAAAfQ//73v/+BiOh/AAA="

Resolve = Callable[[bool], None]
Probe = Callable[[Resolve], None]


class SupportStatus(Enum):
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    PENDING = "pending"
    UNKNOWN = "unknown"


@dataclass
class TypeEntry:
    """Registry entry for one MIME type."""

    mime_type: str
    status: SupportStatus
    probe: Optional[Probe] = None
    resolved_at: Optional[datetime] = None


class MimeSupportRegistry:
    """Tri-state MIME support table with one-shot asynchronous probes.

    Uses an RLock so a probe that resolves synchronously while being started
    can update its own entry.
    """

    def __init__(self) -> None:
        self._types: Dict[str, TypeEntry] = {}
        self._lock = threading.RLock()
        self._listeners: List[Callable[[str, bool], None]] = []

    def register(self, mime_type: str, supported: bool) -> None:
        """Register a type whose support is already known."""
        self._check_type(mime_type)
        status = SupportStatus.SUPPORTED if supported else SupportStatus.UNSUPPORTED
        with self._lock:
            self._types[mime_type] = TypeEntry(
                mime_type=mime_type,
                status=status,
                resolved_at=datetime.now(timezone.utc),
            )
        logger.debug("Registered type %s: %s", mime_type, status.value)

    def register_probe(self, mime_type: str, probe: Probe) -> None:
        """Register a type whose support is decided by ``probe``.

        The probe receives a callback and must eventually call it exactly
        once with True or False.
        """
        self._check_type(mime_type)
        with self._lock:
            self._types[mime_type] = TypeEntry(
                mime_type=mime_type,
                status=SupportStatus.UNKNOWN,
                probe=probe,
            )
        logger.debug("Registered probe for type %s", mime_type)

    @staticmethod
    def _check_type(mime_type: str) -> None:
        if not isinstance(mime_type, str) or not mime_type:
            raise PicturefillError(f"MIME type must be a non-empty string, got {mime_type!r}")

    def add_listener(self, callback: Callable[[str, bool], None]) -> None:
        """Call ``callback(mime_type, supported)`` whenever a probe resolves."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str, bool], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def status(self, mime_type: str) -> Optional[SupportStatus]:
        """Current status without starting any probe; None if unregistered."""
        with self._lock:
            entry = self._types.get(mime_type)
            return entry.status if entry else None

    def verify(self, mime_type: Optional[str]) -> SupportStatus:
        """Answer whether a declaration with this ``type`` may be used.

        An absent or empty type is always supported, an unregistered one never
        is. Asking about a probe-backed type starts its probe once and reports
        PENDING until the probe resolves.
        """
        if mime_type is None or mime_type == "":
            return SupportStatus.SUPPORTED

        with self._lock:
            entry = self._types.get(mime_type)
            if entry is None:
                logger.debug("Unregistered type %s treated as unsupported", mime_type)
                return SupportStatus.UNSUPPORTED
            if entry.status is not SupportStatus.UNKNOWN:
                return entry.status

            entry.status = SupportStatus.PENDING
            probe = entry.probe

        logger.debug("Starting support probe for %s", mime_type)
        try:
            probe(self._resolver_for(mime_type))
        except Exception as exc:
            logger.error("Support probe for %s failed to start: %s", mime_type, exc, exc_info=True)
            self.resolve(mime_type, False)

        with self._lock:
            return self._types[mime_type].status

    def _resolver_for(self, mime_type: str) -> Resolve:
        def resolve(supported: bool) -> None:
            self.resolve(mime_type, supported)

        return resolve

    def resolve(self, mime_type: str, supported: bool) -> None:
        """Record a probe outcome and notify listeners.

        Only a PENDING entry can be resolved; later calls are ignored.
        """
        with self._lock:
            entry = self._types.get(mime_type)
            if entry is None or entry.status is not SupportStatus.PENDING:
                logger.debug("Ignoring resolution of %s (not pending)", mime_type)
                return
            entry.status = SupportStatus.SUPPORTED if supported else SupportStatus.UNSUPPORTED
            entry.resolved_at = datetime.now(timezone.utc)
            listeners = list(self._listeners)

        logger.debug("Type %s resolved: %s", mime_type, entry.status.value)
        for callback in listeners:
            callback(mime_type, bool(supported))

    def snapshot(self) -> Dict[str, str]:
        """Map of MIME type to status value."""
        with self._lock:
            return {name: entry.status.value for name, entry in self._types.items()}

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._types.clear()


def webp_probe(host: Host) -> Probe:
    """Probe decoding a tiny lossless webp through the host."""

    def probe(resolve: Resolve) -> None:
        host.load_probe_image(
            WEBP_PROBE_URI,
            on_load=lambda width: resolve(width == 1),
            on_error=lambda: resolve(False),
        )

    return probe


def build_default_registry(host: Host) -> MimeSupportRegistry:
    """Registry with the built-in entries.

    - configured static raster types: supported
    - image/svg+xml: the host's synchronous feature check
    - image/webp: asynchronous decode probe (when enabled)
    """
    registry = MimeSupportRegistry()
    for mime_type in pf_config.picturefill_static_types():
        registry.register(mime_type, True)
    registry.register("image/svg+xml", bool(host.supports_svg()))
    if pf_config.picturefill_webp_probe_enabled():
        registry.register_probe("image/webp", webp_probe(host))
    return registry
