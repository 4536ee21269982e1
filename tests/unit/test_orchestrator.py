"""Unit tests for SelectionOrchestrator."""

from __future__ import annotations

import gc
import logging
from unittest.mock import MagicMock

import pytest

from picturefill import config as pf_config
from picturefill.host import Document, Element, InMemoryHost, ManualScheduler, img, picture, source
from picturefill.selection import SelectionOrchestrator
from picturefill.support import MimeSupportRegistry


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    pf_config.reset_config()
    for name in (
        "PICTUREFILL_CONFIG",
        "PICTUREFILL_RESIZE_DEBOUNCE_MS",
        "PICTUREFILL_SIZE_POLL_INTERVAL_MS",
        "PICTUREFILL_DEFAULT_LENGTH",
        "PICTUREFILL_WARN_MIXED_CONTENT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    pf_config.reset_config()


@pytest.fixture
def scheduler():
    return ManualScheduler()


def make(children, scheduler, **host_kwargs):
    host = InMemoryHost(Document(children), **host_kwargs)
    return host, SelectionOrchestrator(host, scheduler)


class TestEvaluate:
    """Test a single evaluation pass."""

    def test_swaps_to_best_density(self, scheduler):
        image = img({"srcset": "a.jpg 1x, b.jpg 2x"}, natural_width=800)
        host, orchestrator = make([image], scheduler, dpr=2)

        orchestrator.evaluate()

        assert image.src == "b.jpg"
        assert image.current_src == "b.jpg"
        assert image.get_attribute("width") == "400"
        assert orchestrator.table.get(image).evaluated is True

    def test_srcset_captured_and_cleared(self, scheduler):
        """Test the native srcset is moved into the side table exactly once."""
        image = img({"srcset": "a.jpg 1x, b.jpg 2x"})
        host, orchestrator = make([image], scheduler)

        orchestrator.evaluate()

        state = orchestrator.table.get(image)
        assert state.cached_srcset == "a.jpg 1x, b.jpg 2x"
        assert image.get_attribute("srcset") == ""
        assert image.get_attribute("data-pfsrcset") == "a.jpg 1x, b.jpg 2x"

        image.srcset = "other.jpg 1x"
        orchestrator.evaluate(reevaluate=True)
        assert state.cached_srcset == "a.jpg 1x, b.jpg 2x"
        assert image.srcset == ""

    def test_idempotent_without_reevaluate(self, scheduler):
        """Test a second pass on evaluated images has no side effects."""
        image = img({"srcset": "a.jpg 1x, b.jpg 2x"})
        host, orchestrator = make([image], scheduler)
        orchestrator.evaluate()

        image.src = "manual.jpg"
        host.measured.clear()
        orchestrator.evaluate()

        assert image.src == "manual.jpg"
        assert host.measured == []

    def test_reevaluate_revisits(self, scheduler):
        image = img({"srcset": "a.jpg 1x, b.jpg 2x"})
        host, orchestrator = make([image], scheduler)
        orchestrator.evaluate()

        image.src = "manual.jpg"
        orchestrator.evaluate(reevaluate=True)
        assert image.src == "a.jpg"

    def test_non_image_targets_skipped(self, scheduler):
        div = Element("div", {"srcset": "a.jpg"})
        host, orchestrator = make([div], scheduler)
        orchestrator.evaluate([div])
        assert div not in orchestrator.table

    def test_no_candidates_still_evaluated(self, scheduler):
        image = img({"src": "keep.jpg"})
        container = picture(image)
        host, orchestrator = make([container], scheduler)

        orchestrator.evaluate()

        assert image.src == "keep.jpg"
        assert orchestrator.table.get(image).evaluated is True

    def test_same_resource_not_swapped(self, scheduler):
        image = img({"src": "/img/a.jpg", "srcset": "a.jpg 1x"}, complete=False)
        host, orchestrator = make([image], scheduler)
        orchestrator.evaluate()
        assert image.src == "/img/a.jpg"
        assert scheduler.pending() == 0

    def test_native_srcset_left_alone(self, scheduler):
        """Test resolution-only srcset is left to a host that supports it."""
        image = img({"src": "fallback.jpg", "srcset": "a.jpg 1x, b.jpg 2x"})
        host, orchestrator = make(
            [image], scheduler, dpr=2, srcset_supported=True, sizes_supported=True
        )

        orchestrator.evaluate()

        assert image.src == "fallback.jpg"
        assert image.srcset == "a.jpg 1x, b.jpg 2x"
        assert orchestrator.table.get(image).evaluated is True
        assert host.measured == []

    def test_width_descriptors_polyfilled_without_native_sizes(self, scheduler):
        image = img({"srcset": "s.jpg 400w, l.jpg 800w", "sizes": "400px"})
        host, orchestrator = make([image], scheduler, srcset_supported=True)

        orchestrator.evaluate()

        assert image.src == "s.jpg"
        assert image.srcset == ""

    def test_matched_source_drives_placeholder(self, scheduler):
        image = img({"src": "fallback.jpg"})
        container = picture(
            source({"srcset": "wide.jpg", "media": "(min-width: 800px)"}),
            source({"srcset": "narrow.jpg"}),
            image,
        )
        host, orchestrator = make([container], scheduler, viewport_width=1024)

        orchestrator.evaluate()
        assert image.src == "wide.jpg"

    def test_video_shim_removed(self, scheduler):
        image = img()
        video = Element("video", children=[source({"srcset": "hidden.jpg"})])
        container = picture(video, image)
        host, orchestrator = make([container], scheduler)

        orchestrator.evaluate()

        assert image.src == "hidden.jpg"
        assert [child.node_name for child in container.children] == ["SOURCE", "IMG"]


class TestMixedContent:
    """Test the mixed content guard."""

    def test_blocked_on_secure_host(self, scheduler, caplog):
        image = img({"src": "https://cdn/a.jpg", "srcset": "HTTP://cdn/b.jpg 2x"})
        host, orchestrator = make([image], scheduler, dpr=2, secure=True)

        with caplog.at_level(logging.WARNING):
            orchestrator.evaluate()

        assert image.src == "https://cdn/a.jpg"
        assert "Blocked mixed content image HTTP://cdn/b.jpg" in caplog.text
        assert orchestrator.table.get(image).evaluated is True

    def test_allowed_on_insecure_host(self, scheduler):
        image = img({"srcset": "http://cdn/b.jpg 2x"})
        host, orchestrator = make([image], scheduler, dpr=2, secure=False)
        orchestrator.evaluate()
        assert image.src == "http://cdn/b.jpg"

    def test_warning_can_be_silenced(self, scheduler, caplog, monkeypatch):
        monkeypatch.setenv("PICTUREFILL_WARN_MIXED_CONTENT", "false")
        image = img({"srcset": "http://cdn/b.jpg 2x"})
        host, orchestrator = make([image], scheduler, secure=True)

        with caplog.at_level(logging.WARNING):
            orchestrator.evaluate()

        assert image.src == ""
        assert "Blocked" not in caplog.text


class TestSwapSideEffects:
    """Test rendering workaround and intrinsic width back-fill."""

    def test_backface_visibility_fix(self, scheduler):
        image = img({"srcset": "a.jpg 1x"})
        image.style.update({"webkitBackfaceVisibility": "hidden", "zoom": "1"})
        host, orchestrator = make([image], scheduler)

        orchestrator.evaluate()

        assert image.style["zoom"] == "1"
        assert host.layout_reads == 1

    def test_fix_skipped_without_property(self, scheduler):
        image = img({"srcset": "a.jpg 1x"})
        host, orchestrator = make([image], scheduler)
        orchestrator.evaluate()
        assert host.layout_reads == 0
        assert "zoom" not in image.style

    def test_width_polled_until_complete(self, scheduler):
        image = img({"srcset": "a.jpg 1x, b.jpg 2x"}, complete=False)
        host, orchestrator = make([image], scheduler, dpr=2)

        orchestrator.evaluate()
        assert image.get_attribute("width") is None

        scheduler.advance(250)
        assert image.get_attribute("width") is None
        assert scheduler.pending() == 1

        image.complete = True
        image.natural_width = 600
        scheduler.advance(250)
        assert image.get_attribute("width") == "300"
        assert scheduler.pending() == 0

    def test_fractional_width(self, scheduler):
        image = img({"srcset": "a.jpg 3x"}, natural_width=1000)
        host, orchestrator = make([image], scheduler, dpr=3)
        orchestrator.evaluate()
        assert image.get_attribute("width") == repr(1000 / 3)

    def test_author_width_kept(self, scheduler):
        """Test a width present before the image is ready is not overwritten."""
        image = img({"srcset": "a.jpg 2x", "width": "123"}, complete=False, natural_width=800)
        host, orchestrator = make([image], scheduler, dpr=2)

        orchestrator.evaluate()
        image.complete = True
        scheduler.advance(250)

        assert image.get_attribute("width") == "123"

    def test_own_width_replaced_on_next_swap(self, scheduler):
        image = img({"srcset": "s.jpg 400w, l.jpg 800w"}, natural_width=400)
        host, orchestrator = make([image], scheduler, viewport_width=400)
        orchestrator.evaluate()
        assert image.get_attribute("width") == "400"

        image.complete = False
        host.viewport_width = 800
        orchestrator.evaluate(reevaluate=True)
        image.complete = True
        image.natural_width = 800
        scheduler.advance(250)

        assert image.src == "l.jpg"
        assert image.get_attribute("width") == "800"

    def test_forget_cancels_polling(self, scheduler):
        image = img({"srcset": "a.jpg 1x"}, complete=False)
        host, orchestrator = make([image], scheduler)
        orchestrator.evaluate()
        assert scheduler.pending() == 1

        assert orchestrator.forget(image) is True
        assert scheduler.pending() == 0

    def test_prune_detached(self, scheduler):
        image = img({"srcset": "a.jpg 1x"}, complete=False)
        container = picture(image)
        host, orchestrator = make([container], scheduler)
        orchestrator.evaluate()

        host.document.body.remove_child(container)
        assert orchestrator.prune() == 1
        assert scheduler.pending() == 0

    def test_collected_node_leaves_table(self, scheduler):
        """Test a loading image dropped by its document is not kept alive."""
        image = img({"srcset": "a.jpg 1x"}, complete=False)
        container = picture(image)
        host, orchestrator = make([container], scheduler)
        orchestrator.evaluate()
        assert len(orchestrator.table) == 1
        assert scheduler.pending() == 1

        host.document.body.remove_child(container)
        del image, container
        gc.collect()

        assert len(orchestrator.table) == 0
        scheduler.advance(250)
        assert scheduler.pending() == 0


class TestPassGuard:
    """Test that passes never overlap."""

    def test_request_during_pass_is_queued(self, scheduler):
        image = img({"srcset": "a.jpg 1x", "sizes": "(x) 100px"})
        visits = []

        def media(condition):
            # Re-enter once, from inside the first pass
            if not visits:
                visits.append("media")
                orchestrator.evaluate(reevaluate=True)
                visits.append("media-done")
            return True

        host = InMemoryHost(Document([image]), media=media)
        orchestrator = SelectionOrchestrator(host, scheduler)
        run_pass = MagicMock(wraps=orchestrator._run_pass)
        orchestrator._run_pass = run_pass

        orchestrator.evaluate()

        assert run_pass.call_count == 2
        assert run_pass.call_args_list[1].args == (None, True)
        # the nested request returned immediately instead of running inline
        assert visits == ["media", "media-done"]
        assert orchestrator.snapshot()["pass_in_flight"] is False


class TestLifecycle:
    """Test install, resize debounce and uninstall."""

    def test_install_skipped_with_native_picture(self, scheduler):
        image = img({"srcset": "a.jpg 1x"})
        host, orchestrator = make([image], scheduler, picture_supported=True)

        assert orchestrator.install() is False
        assert image.src == ""
        assert host.resize_listeners == 0

    def test_install_runs_pass_and_listens(self, scheduler):
        image = img({"srcset": "a.jpg 1x"})
        host, orchestrator = make([image], scheduler)

        assert orchestrator.install() is True
        assert image.src == "a.jpg"
        assert host.resize_listeners == 1

    def test_resize_debounced(self, scheduler):
        """Test bursts of resizes collapse into one pass after the last signal."""
        image = img({"srcset": "s.jpg 400w, l.jpg 800w"})
        host, orchestrator = make([image], scheduler, viewport_width=400)
        orchestrator.install()
        assert image.src == "s.jpg"

        run_pass = MagicMock(wraps=orchestrator._run_pass)
        orchestrator._run_pass = run_pass

        host.resize(600)
        scheduler.advance(30)
        host.resize(700)
        scheduler.advance(30)
        host.resize(800)
        assert orchestrator.resize_pending is True

        scheduler.advance(59)
        run_pass.assert_not_called()
        scheduler.advance(1)

        run_pass.assert_called_once_with(None, True)
        assert image.src == "l.jpg"
        assert orchestrator.resize_pending is False

    def test_uninstall(self, scheduler):
        image = img({"srcset": "a.jpg 1x"}, complete=False)
        host, orchestrator = make([image], scheduler)
        orchestrator.install()
        host.resize(500)

        orchestrator.uninstall()

        assert host.resize_listeners == 0
        assert scheduler.pending() == 0
        assert orchestrator.installed is False

    def test_type_resolved_after_uninstall_is_ignored(self, scheduler):
        image = img({"src": "initial.gif"})
        container = picture(source({"srcset": "a.webp", "type": "image/webp"}), image)
        host, orchestrator = make([container], scheduler, probe_widths={"data:image/webp": 1})
        orchestrator.install()
        assert host.pending_probes == 1

        orchestrator.uninstall()
        host.finish_probes()

        assert image.src == "initial.gif"
        assert orchestrator.table.get(image).evaluated is False

    def test_reinstall_follows_types_again(self, scheduler):
        image = img()
        container = picture(source({"srcset": "a.webp", "type": "image/webp"}), image)
        host, orchestrator = make([container], scheduler, probe_widths={"data:image/webp": 1})
        orchestrator.install()
        orchestrator.uninstall()
        orchestrator.install()

        run_pass = MagicMock(wraps=orchestrator._run_pass)
        orchestrator._run_pass = run_pass
        host.finish_probes()

        run_pass.assert_called_once_with(None, False)
        assert image.src == "a.webp"

    def test_eligible_images(self, scheduler):
        in_picture = img()
        with_srcset = img({"srcset": "a.jpg"})
        plain = img({"src": "plain.jpg"})
        host, orchestrator = make([picture(in_picture), with_srcset, plain], scheduler)
        assert orchestrator.eligible_images() == [in_picture, with_srcset]

    def test_custom_registry_used(self, scheduler):
        registry = MimeSupportRegistry()
        registry.register("image/jxl", True)
        image = img()
        container = picture(source({"srcset": "a.jxl", "type": "image/jxl"}), image)
        host = InMemoryHost(Document([container]))
        orchestrator = SelectionOrchestrator(host, scheduler, registry=registry)

        orchestrator.evaluate()
        assert image.src == "a.jxl"
