"""Tests for rebuilding the render context and its readiness gate.

Usage
-----
Run ``pytest tests/test_refresher.py -v``. Scans are slowed down by swapping
``Refresher.scan`` for a wrapper that blocks on a :class:`threading.Event`,
which lets a test observe the context while a refresh is in flight.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import typing as typ

import pytest

from sitepress.config import load_site_config
from sitepress.context import RenderContext
from sitepress.engines import JinjaRenderer, PlainRenderer
from sitepress.errors import RefreshError
from sitepress.pipeline import Pipeline
from sitepress.refresher import Refresher
from sitepress.sinks import MemorySink

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sitepress.context import ContextSnapshot

TOOLS_V1 = """
HELPERS = {"version": lambda: "first"}
FILTERS = {"shout": lambda text: text.upper()}
"""

TOOLS_V2 = """
HELPERS = {"version": lambda: "second version"}
"""


def _refresher(root: Path, renderer: typ.Any = None) -> Refresher:
    return Refresher(
        load_site_config(root), RenderContext(), renderer or JinjaRenderer()
    )


def test_new_context_is_not_ready_until_refreshed(write_site: typ.Callable[..., Path]) -> None:
    refresher = _refresher(write_site({"layouts/default.html": "{{ body }}"}))
    assert not refresher.context.ready

    snapshot = asyncio.run(refresher.refresh())

    assert refresher.context.ready
    assert refresher.context.generation == 1
    assert refresher.context.snapshot is snapshot
    assert set(snapshot.layouts) == {"default"}


def test_malformed_assets_are_skipped(
    write_site: typ.Callable[..., Path], caplog: pytest.LogCaptureFixture
) -> None:
    root = write_site(
        {
            "layouts/default.html": "{{ body }}",
            "layouts/broken.html": "{% if %}",
            "partials/nav.html": "<nav></nav>",
            "data/site.yml": "name: Example\n",
            "data/broken.yml": "name: [unclosed\n",
            "helpers/tools.py": TOOLS_V1,
            "helpers/bad.py": "raise RuntimeError('plugin exploded')\n",
            "locales/jp/strings.yml": "hello: Konnichiwa\n",
        }
    )
    with caplog.at_level(logging.WARNING):
        snapshot = asyncio.run(_refresher(root).refresh())

    assert set(snapshot.layouts) == {"default"}
    assert set(snapshot.fragments) == {"nav"}
    assert dict(snapshot.global_data) == {"site": {"name": "Example"}}
    assert snapshot.locales == ("jp",)
    assert snapshot.helpers["version"]() == "first"
    assert {"markdown", "code", "code_styles", "version"} <= set(snapshot.helpers)
    assert snapshot.filters["shout"]("hi") == "HI"
    assert "broken.html" in caplog.text
    assert "broken.yml" in caplog.text
    assert "plugin exploded" in caplog.text


def test_refresh_hot_replaces_helpers_without_touching_old_snapshot(
    write_site: typ.Callable[..., Path],
) -> None:
    root = write_site({"helpers/tools.py": TOOLS_V1})
    refresher = _refresher(root)

    async def scenario() -> tuple[ContextSnapshot, ContextSnapshot]:
        old = await refresher.refresh()
        (root / "helpers" / "tools.py").write_text(TOOLS_V2, encoding="utf-8")
        new = await refresher.refresh()
        return old, new

    old, new = asyncio.run(scenario())
    assert old.helpers["version"]() == "first"
    assert new.helpers["version"]() == "second version"
    assert "shout" in old.filters
    assert "shout" not in new.filters
    assert old.environment is not new.environment


def test_engine_capabilities_limit_what_is_loaded(
    write_site: typ.Callable[..., Path],
) -> None:
    root = write_site(
        {
            "layouts/default.html": "{{ body }}",
            "partials/nav.html": "<nav></nav>",
            "helpers/tools.py": TOOLS_V1,
            "data/site.yml": "name: Example\n",
        }
    )
    snapshot = asyncio.run(_refresher(root, PlainRenderer()).refresh())
    assert dict(snapshot.layouts) == {}
    assert dict(snapshot.fragments) == {}
    assert dict(snapshot.helpers) == {}
    assert dict(snapshot.global_data) == {"site": {"name": "Example"}}


def test_build_requested_during_refresh_waits_for_readiness(
    write_site: typ.Callable[..., Path],
) -> None:
    root = write_site(
        {"layouts/default.html": "<p>first</p>{{ body }}", "pages/index.md": "Body"}
    )
    pipeline = Pipeline(load_site_config(root))
    release = threading.Event()

    async def scenario() -> tuple[bool, int, MemorySink]:
        await pipeline.refresh()
        (root / "layouts" / "default.html").write_text(
            "<p>second</p>{{ body }}", encoding="utf-8"
        )
        scan = pipeline.refresher.scan

        def gated_scan() -> ContextSnapshot:
            release.wait(timeout=5)
            return scan()

        pipeline.refresher.scan = gated_scan  # type: ignore[method-assign]
        sink = MemorySink()
        refresh = asyncio.create_task(pipeline.refresh())
        await asyncio.sleep(0)
        ready_during_refresh = pipeline.context.ready
        build = asyncio.create_task(pipeline.build(sink))
        await asyncio.sleep(0.05)
        emitted_before_ready = len(sink)
        release.set()
        await refresh
        await build
        return ready_during_refresh, emitted_before_ready, sink

    ready_during_refresh, emitted_before_ready, sink = asyncio.run(scenario())
    assert not ready_during_refresh
    assert emitted_before_ready == 0
    assert sink["index.html"] == "<p>second</p>Body"


def test_requests_during_a_refresh_coalesce_into_one_follow_up(
    write_site: typ.Callable[..., Path],
) -> None:
    refresher = _refresher(write_site({"layouts/default.html": "{{ body }}"}))
    scans: list[int] = []

    async def scenario() -> list[asyncio.Task[ContextSnapshot]]:
        await refresher.refresh()
        scan = refresher.scan

        def counting_scan() -> ContextSnapshot:
            scans.append(1)
            return scan()

        refresher.scan = counting_scan  # type: ignore[method-assign]
        first = refresher.request_refresh()
        await asyncio.sleep(0)
        second = refresher.request_refresh()
        third = refresher.request_refresh()
        await asyncio.gather(first, second, third)
        return [first, second, third]

    first, second, third = asyncio.run(scenario())
    assert first is not second
    assert second is third
    assert len(scans) == 2
    assert refresher.context.ready


def test_failed_scan_keeps_previous_snapshot(
    write_site: typ.Callable[..., Path],
) -> None:
    refresher = _refresher(write_site({"layouts/default.html": "{{ body }}"}))

    def failing_scan() -> ContextSnapshot:
        msg = "disk on fire"
        raise RuntimeError(msg)

    async def scenario() -> ContextSnapshot:
        snapshot = await refresher.refresh()
        refresher.scan = failing_scan  # type: ignore[method-assign]
        with pytest.raises(RuntimeError, match="disk on fire"):
            await refresher.refresh()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert refresher.context.ready
    assert refresher.context.snapshot is snapshot


def test_failed_first_refresh_releases_waiting_builds(
    write_site: typ.Callable[..., Path],
) -> None:
    root = write_site({"layouts/default.html": "{{ body }}", "pages/index.md": "Body"})
    pipeline = Pipeline(load_site_config(root))
    release = threading.Event()

    def failing_scan() -> ContextSnapshot:
        release.wait(timeout=5)
        msg = "disk on fire"
        raise RuntimeError(msg)

    pipeline.refresher.scan = failing_scan  # type: ignore[method-assign]

    async def scenario() -> bool:
        refresh = asyncio.create_task(pipeline.refresh())
        await asyncio.sleep(0)
        build = asyncio.create_task(pipeline.build(MemorySink()))
        await asyncio.sleep(0.05)
        waiting = not build.done()
        release.set()
        with pytest.raises(RuntimeError, match="disk on fire"):
            await refresh
        with pytest.raises(RefreshError, match="disk on fire"):
            await asyncio.wait_for(build, timeout=5)
        return waiting

    assert asyncio.run(scenario())
    assert not pipeline.context.ready
    assert pipeline.context.generation == 0


def test_cancelled_refresh_does_not_block_later_refreshes(
    write_site: typ.Callable[..., Path],
) -> None:
    refresher = _refresher(write_site({"layouts/default.html": "{{ body }}"}))
    release = threading.Event()
    scan = refresher.scan

    def gated_scan() -> ContextSnapshot:
        release.wait(timeout=5)
        return scan()

    async def scenario() -> tuple[bool, bool]:
        first = await refresher.refresh()
        refresher.scan = gated_scan  # type: ignore[method-assign]
        task = refresher.request_refresh()
        await asyncio.sleep(0)
        ready_while_scanning = refresher.context.ready
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        release.set()
        released = refresher.context.ready and refresher.context.snapshot is first
        refresher.scan = scan  # type: ignore[method-assign]
        await refresher.refresh()
        return ready_while_scanning, released

    ready_while_scanning, released = asyncio.run(scenario())
    assert not ready_while_scanning
    assert released
    assert refresher.context.ready
    assert not refresher.in_progress
    assert refresher.context.generation == 2
