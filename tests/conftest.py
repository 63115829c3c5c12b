"""Shared fixtures for writing throwaway sites and building them in memory.

``write_site`` lays out a site folder under ``tmp_path`` from a mapping of
relative paths to file contents, always creating ``pages/``. ``build_site``
loads the folder's configuration, refreshes a fresh pipeline, and builds every
page into a :class:`~sitepress.sinks.MemorySink`.
"""

from __future__ import annotations

import asyncio
import textwrap
import typing as typ

import pytest

from sitepress.config import load_site_config
from sitepress.pipeline import Pipeline
from sitepress.sinks import MemorySink

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from sitepress.models import BuildSummary

DEFAULT_LAYOUT = (
    "<html><head><title>{{ page }}</title></head><body>{{ body }}</body></html>"
)

WriteSite = typ.Callable[..., "Path"]
BuildSite = typ.Callable[..., "tuple[MemorySink, BuildSummary]"]


@pytest.fixture
def default_layout() -> dict[str, str]:
    """Return the files of a ``default`` layout titling pages by name."""
    return {"layouts/default.html": DEFAULT_LAYOUT}


@pytest.fixture
def write_site(tmp_path: Path) -> WriteSite:
    """Return a helper writing ``{relative_path: contents}`` into a site folder."""

    def _write(files: cabc.Mapping[str, str], root: Path | None = None) -> Path:
        site = root or tmp_path / "site"
        (site / "pages").mkdir(parents=True, exist_ok=True)
        for relative, contents in files.items():
            path = site / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(contents).lstrip(), encoding="utf-8")
        return site

    return _write


@pytest.fixture
def build_site() -> BuildSite:
    """Return a helper that builds a site folder and returns the sink and summary."""

    def _build(root: Path, **overrides: typ.Any) -> tuple[MemorySink, BuildSummary]:
        config = load_site_config(root, overrides=overrides or None)
        pipeline = Pipeline(config)
        sink = MemorySink()
        summary = asyncio.run(pipeline.build(sink))
        return sink, summary

    return _build
