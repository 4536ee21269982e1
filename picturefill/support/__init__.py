"""MIME type support tracking for ``source`` declarations."""

from .registry import (
    WEBP_PROBE_URI,
    MimeSupportRegistry,
    SupportStatus,
    TypeEntry,
    build_default_registry,
    webp_probe,
)

__all__ = [
    "MimeSupportRegistry",
    "SupportStatus",
    "TypeEntry",
    "WEBP_PROBE_URI",
    "build_default_registry",
    "webp_probe",
]
