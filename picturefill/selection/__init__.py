"""Responsive image selection.

Composes the parsers, the MIME support registry and the host capabilities
into evaluation passes over image placeholders.
"""

from .candidates import ResolvedCandidate, build_candidates, select_candidate
from .matcher import MatchOutcome, SourceMatch, match_source, remove_video_shim
from .orchestrator import SelectionOrchestrator, is_attached
from .state import PlaceholderState, PlaceholderTable

__all__ = [
    "MatchOutcome",
    "PlaceholderState",
    "PlaceholderTable",
    "ResolvedCandidate",
    "SelectionOrchestrator",
    "SourceMatch",
    "build_candidates",
    "is_attached",
    "match_source",
    "remove_video_shim",
    "select_candidate",
]
