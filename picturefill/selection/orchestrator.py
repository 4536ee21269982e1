"""SelectionOrchestrator: drives evaluation passes over image placeholders.

One pass walks the target images in order, finds the declaration that
should drive each one, builds and selects candidates, and swaps the image
resource through the host. Passes never overlap: a pass requested while one
is running (by a probe resolving mid-pass, a resize timer, or a direct call)
is queued and runs as soon as the current one finishes.
"""

from __future__ import annotations

import logging
import math
import threading
import weakref
from typing import Any, Callable, Dict, Iterable, List, Optional

from .. import config as pf_config
from ..host.interface import Host, ImageNode, Node, Scheduler, TimerHandle
from ..support.registry import MimeSupportRegistry, build_default_registry
from .candidates import ResolvedCandidate, build_candidates, select_candidate
from .matcher import NOT_FOUND, match_source, remove_video_shim
from .state import PlaceholderState, PlaceholderTable

logger = logging.getLogger(__name__)

ELEMENT_NODE = 1
DOCUMENT_NODE = 9


def _format_number(value: float) -> str:
    """Render a width the way an attribute setter stringifies a number."""
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(value)


def is_attached(node: Node) -> bool:
    """True when ``node`` is connected to a document root."""
    current: Optional[Node] = node
    while current is not None:
        if current.node_type == DOCUMENT_NODE:
            return True
        current = current.parent
    return False


def _in_picture(node: Node) -> bool:
    parent = node.parent
    return parent is not None and parent.node_name == "PICTURE"


class SelectionOrchestrator:
    """Resolves responsive images for a host document.

    Example:
        host = InMemoryHost(document, dpr=2)
        orchestrator = SelectionOrchestrator(host, ManualScheduler())
        orchestrator.install()
    """

    def __init__(
        self,
        host: Host,
        scheduler: Scheduler,
        registry: Optional[MimeSupportRegistry] = None,
        table: Optional[PlaceholderTable] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            host: Platform capabilities
            scheduler: Fixed-delay timer source
            registry: MIME support registry (built-in entries if None)
            table: Placeholder side table (fresh if None)
        """
        self.host = host
        self.scheduler = scheduler
        self.registry = registry if registry is not None else build_default_registry(host)
        self.table = table if table is not None else PlaceholderTable()

        self._debounce_ms = pf_config.picturefill_resize_debounce_ms()
        self._poll_ms = pf_config.picturefill_size_poll_interval_ms()
        self._default_length = pf_config.picturefill_default_length()
        self._warn_mixed_content = pf_config.picturefill_warn_mixed_content()

        self._lock = threading.RLock()
        self._pass_in_flight = False
        self._queued_force: Optional[bool] = None
        self._resize_working = False
        self._resize_timer: Optional[TimerHandle] = None
        self.installed = False

    # -- lifecycle -------------------------------------------------------

    def install(self) -> bool:
        """Run the first pass and start following type probes and resizes.

        Returns:
            False when the host resolves picture containers natively and
            nothing was done
        """
        if self.host.supports_picture():
            logger.debug("Native picture support, not installing")
            return False
        self.registry.remove_listener(self._on_type_resolved)
        self.registry.add_listener(self._on_type_resolved)
        self.evaluate()
        self.host.add_resize_listener(self.check_resize)
        self.installed = True
        logger.info("Picturefill installed (%d placeholders)", len(self.table))
        return True

    def uninstall(self) -> None:
        """Stop following probes and resizes, and cancel every scheduled task."""
        self.registry.remove_listener(self._on_type_resolved)
        self.host.remove_resize_listener(self.check_resize)
        with self._lock:
            if self._resize_timer is not None:
                self._resize_timer.cancel()
                self._resize_timer = None
            self._resize_working = False
            for _, state in self.table.items():
                state.cancel_backfill()
        self.installed = False
        logger.info("Picturefill uninstalled")

    def forget(self, node: ImageNode) -> bool:
        """Drop the side-table entry of a removed node."""
        return self.table.forget(node)

    def prune(self, attached: Callable[[Node], bool] = is_attached) -> int:
        """Drop side-table entries of nodes no longer in the document."""
        return self.table.prune(attached)

    # -- passes ----------------------------------------------------------

    def eligible_images(self) -> List[ImageNode]:
        """Images a full pass should visit, in document order.

        An image is eligible when it sits in a picture container, carries a
        srcset attribute, or had its srcset captured earlier.
        """
        eligible = []
        for image in self.host.images():
            state = self.table.get(image)
            if (
                _in_picture(image)
                or image.get_attribute("srcset") is not None
                or (state is not None and state.cached_srcset is not None)
            ):
                eligible.append(image)
        return eligible

    def evaluate(
        self,
        elements: Optional[Iterable[Node]] = None,
        reevaluate: bool = False,
    ) -> None:
        """Run one evaluation pass.

        Args:
            elements: Targets in order; all eligible images when None
            reevaluate: Revisit placeholders already evaluated
        """
        with self._lock:
            if self._pass_in_flight:
                self._queued_force = bool(self._queued_force) or reevaluate
                logger.debug("Pass in flight, queued (reevaluate=%s)", self._queued_force)
                return

            self._pass_in_flight = True
            try:
                self._run_pass(elements, reevaluate)
                while self._queued_force is not None:
                    force, self._queued_force = self._queued_force, None
                    self._run_pass(None, force)
            finally:
                self._pass_in_flight = False
                self._queued_force = None

    def _run_pass(self, elements: Optional[Iterable[Node]], reevaluate: bool) -> None:
        targets = list(elements) if elements is not None else self.eligible_images()
        logger.debug("Evaluating %d elements (reevaluate=%s)", len(targets), reevaluate)
        for element in targets:
            self._evaluate_element(element, reevaluate)

    def _evaluate_element(self, element: Node, reevaluate: bool) -> None:
        if element.node_type != ELEMENT_NODE or element.node_name != "IMG":
            return

        state = self.table.ensure(element)
        if state.evaluated and not reevaluate:
            return

        in_picture = _in_picture(element)
        match = NOT_FOUND
        if in_picture:
            remove_video_shim(element.parent)
            match = match_source(element, element.parent, self.host.matches_media, self.registry)
            if match.pending:
                logger.debug("Deferring %r until pending types resolve", element)
                return

        srcset = element.srcset
        if (
            in_picture
            or (srcset and not self.host.srcset_supported)
            or (not self.host.sizes_supported and srcset and "w" in srcset)
        ):
            self._dodge_srcset(element, state)

        if match.found:
            candidates = self._candidates_for(match.source)
            self._apply_best_candidate(candidates, element, state)
        elif not self.host.srcset_supported or state.cached_srcset:
            # Otherwise the host handles resolution-only srcset natively
            candidates = self._candidates_for(element, state)
            self._apply_best_candidate(candidates, element, state)

        state.evaluated = True

    def _dodge_srcset(self, element: ImageNode, state: PlaceholderState) -> None:
        """Capture and clear the native srcset so it cannot override the choice."""
        if not element.srcset:
            return
        if state.cached_srcset is None:
            state.cached_srcset = element.srcset
        element.srcset = ""
        element.set_attribute("data-pfsrcset", state.cached_srcset)
        logger.debug("Captured srcset of %r", element)

    def _candidates_for(
        self,
        node: Node,
        state: Optional[PlaceholderState] = None,
    ) -> List[ResolvedCandidate]:
        srcset = node.get_attribute("srcset")
        if state is not None and state.cached_srcset:
            srcset = state.cached_srcset
        return build_candidates(
            srcset,
            node.get_attribute("sizes"),
            self.host.matches_media,
            self.host.measure_length,
            sizes_supported=self.host.sizes_supported,
            default_length=self._default_length,
        )

    # -- side effects ----------------------------------------------------

    def _apply_best_candidate(
        self,
        candidates: List[ResolvedCandidate],
        element: ImageNode,
        state: PlaceholderState,
    ) -> None:
        best = select_candidate(candidates, self.host.device_pixel_ratio())
        if best is None or element.src.endswith(best.url):
            return

        if self.host.restricts_mixed_content() and best.url[:5].lower() == "http:":
            if self._warn_mixed_content:
                logger.warning("Blocked mixed content image %s", best.url)
            return

        element.src = best.url
        element.current_src = element.src
        logger.debug("Swapped %r to %s", element, best.url)

        self._backface_visibility_fix(element)
        state.cancel_backfill()
        self._set_inherent_size(best.resolution, element, state)

    def _backface_visibility_fix(self, element: ImageNode) -> None:
        """Nudge zoom around a swap so the engine repaints the new resource."""
        style = element.style
        if "webkitBackfaceVisibility" not in style:
            return
        current_zoom = style.get("zoom", "")
        style["zoom"] = ".999"
        self.host.force_layout(element)
        style["zoom"] = current_zoom

    def _set_inherent_size(
        self,
        resolution: float,
        element: ImageNode,
        state: PlaceholderState,
        width_preset: Optional[bool] = None,
    ) -> None:
        """Write ``natural_width / resolution`` as the width once the image is ready.

        Polls until the image reports complete. A width attribute present
        before readiness, and not written here earlier, is left alone.
        """
        ready = element.complete
        if width_preset is None:
            width = element.get_attribute("width")
            width_preset = not ready and width is not None and width != state.written_width

        if not ready:
            # The timer outlives the table entry, so it must not pin the node
            element_ref = weakref.ref(element)
            state.backfill = self.scheduler.call_later(
                self._poll_ms,
                lambda: self._poll_inherent_size(resolution, element_ref, state, width_preset),
            )
            return

        state.backfill = None
        if resolution and not width_preset:
            state.written_width = _format_number(element.natural_width / resolution)
            element.set_attribute("width", state.written_width)

    def _poll_inherent_size(
        self,
        resolution: float,
        element_ref: "weakref.ReferenceType[ImageNode]",
        state: PlaceholderState,
        width_preset: bool,
    ) -> None:
        with self._lock:
            element = element_ref()
            if element is None:
                state.backfill = None
                logger.debug("Placeholder collected, stopping width polling")
                return
            self._set_inherent_size(resolution, element, state, width_preset)

    # -- re-entry triggers -----------------------------------------------

    def check_resize(self) -> None:
        """Resize signal: debounce into one forced pass."""
        with self._lock:
            self._resize_working = True
            if self._resize_timer is not None:
                self._resize_timer.cancel()
            self._resize_timer = self.scheduler.call_later(self._debounce_ms, self._after_resize)

    def _after_resize(self) -> None:
        with self._lock:
            self._resize_timer = None
            try:
                self.evaluate(reevaluate=True)
            finally:
                self._resize_working = False

    @property
    def resize_pending(self) -> bool:
        return self._resize_working

    def _on_type_resolved(self, mime_type: str, supported: bool) -> None:
        logger.debug("Type %s resolved (supported=%s), re-running pass", mime_type, supported)
        self.evaluate()

    # -- introspection ---------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Status summary for monitoring."""
        return {
            "installed": self.installed,
            "pass_in_flight": self._pass_in_flight,
            "resize_pending": self._resize_working,
            "placeholders": self.table.counts(),
            "types": self.registry.snapshot(),
        }
