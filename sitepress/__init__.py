"""Compile a folder of templated pages into a static site.

The package turns source pages plus shared layouts, fragments, helpers, data
and locale tables into rendered documents. Pages are parsed concurrently,
gathered behind a barrier, and then rendered concurrently with the complete
page list available to every template. Supporting files can be refreshed
while the process runs without disturbing a build already in flight.

Exports
-------
- ``app``: Cyclopts application behind the ``sitepress`` command.
- ``main``: Convenience function that invokes the app.
- ``Pipeline``: Programmatic entry point owning the render context.
- ``load_site_config``: Read ``sitepress.yaml`` into a ``SiteConfig``.

Examples
--------
>>> import asyncio
>>> from pathlib import Path
>>> from sitepress import MemorySink, Pipeline, load_site_config
>>> pipeline = Pipeline(load_site_config(Path("site")))  # doctest: +SKIP
>>> asyncio.run(pipeline.build(MemorySink())).message  # doctest: +SKIP
'2 pages built.'
"""

from __future__ import annotations

from .cli import app, main
from .config import SiteConfig, load_site_config
from .errors import (
    AssetLoadError,
    ConfigurationError,
    LayoutResolutionError,
    RefreshError,
    RenderError,
    SitepressError,
    TransformError,
)
from .models import BuildSummary, FinishedPage, PageRecord, SourceDocument
from .pipeline import Phase, Pipeline
from .sinks import DirectorySink, MemorySink

__all__ = [
    "AssetLoadError",
    "BuildSummary",
    "ConfigurationError",
    "DirectorySink",
    "FinishedPage",
    "LayoutResolutionError",
    "MemorySink",
    "PageRecord",
    "Phase",
    "Pipeline",
    "RefreshError",
    "RenderError",
    "SiteConfig",
    "SitepressError",
    "SourceDocument",
    "TransformError",
    "app",
    "main",
    "load_site_config",
]
