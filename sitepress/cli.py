"""Cyclopts CLI entrypoint for compiling a site folder into rendered pages.

The ``sitepress`` console script defined here loads ``sitepress.yaml`` from the
site folder, refreshes the render context, and builds every page into the
output folder, printing one ``wrote`` line per file and a summary line. With
``--watch`` it keeps running and rebuilds whenever a page or a supporting file
changes. Every option can also come from a ``SITEPRESS_*`` environment
variable.

Examples
--------
Build a site once:

>>> from sitepress.cli import app
>>> app(["build", "site", "dist"])  # doctest: +SKIP

Rebuild on every change:

>>> app(["build", "site", "dist", "--watch"])  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import logging
import sys
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from .config import load_site_config
from .errors import ConfigurationError, SitepressError
from .pipeline import Pipeline
from .sinks import DirectorySink
from .watcher import SiteWatcher

if typ.TYPE_CHECKING:
    from .models import BuildSummary

logger = logging.getLogger(__name__)

app = App(name="sitepress", config=cyclopts.config.Env("SITEPRESS_", command=False))  # type: ignore[unknown-argument]


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


async def build_once(pipeline: Pipeline, output_dir: Path) -> BuildSummary:
    """Run one build pass into ``output_dir`` and print what was written."""
    sink = DirectorySink(output_dir)
    summary = await pipeline.build(sink)
    for path in sorted(sink.written):
        print(f"wrote {_format_path(path)}")
    print(summary.message)
    return summary


async def watch_and_rebuild(pipeline: Pipeline, output_dir: Path) -> None:
    """Rebuild after every change until cancelled.

    Changes to supporting folders refresh the render context first. Changes
    arriving during a rebuild are folded into a single follow-up rebuild.
    """
    loop = asyncio.get_running_loop()
    asset_roots = list(pipeline.config.asset_roots().values())
    changed = asyncio.Event()

    def on_change(path: Path) -> None:
        logger.debug("Change detected: %s", path)
        if any(path.is_relative_to(root) for root in asset_roots):
            pipeline.request_refresh()
        changed.set()

    roots = [pipeline.config.pages_root, *asset_roots]
    with SiteWatcher(roots, on_change, loop=loop):
        print("watching for changes (Ctrl+C to stop)")
        while True:
            await changed.wait()
            changed.clear()
            await pipeline.on_ready()
            try:
                await build_once(pipeline, output_dir)
            except SitepressError as exc:
                logger.error("Rebuild failed: %s", exc)


async def _run(pipeline: Pipeline, output_dir: Path, *, watch: bool) -> None:
    await pipeline.refresh()
    await build_once(pipeline, output_dir)
    if watch:
        await watch_and_rebuild(pipeline, output_dir)


@app.command(help="Compile a site folder into rendered pages.")
def build(
    input_dir: typ.Annotated[
        Path, Parameter(help="Site folder holding pages/, layouts/ and friends")
    ],
    output_dir: typ.Annotated[
        Path, Parameter(help="Folder that receives the rendered pages")
    ],
    *,
    config: typ.Annotated[
        Path | None,
        Parameter(help="Configuration file; defaults to <input>/sitepress.yaml"),
    ] = None,
    engine: typ.Annotated[
        str | None, Parameter(help="Template engine overriding the configuration")
    ] = None,
    watch: typ.Annotated[
        bool, Parameter(help="Keep running and rebuild when files change")
    ] = False,
    verbose: typ.Annotated[bool, Parameter(help="Log debug output")] = False,
) -> None:
    """Build every page of the site at ``input_dir`` into ``output_dir``.

    Parameters
    ----------
    input_dir : Path
        Site folder containing the pages folder and supporting folders.
    output_dir : Path
        Destination folder; created when missing.
    config : Path or None, optional
        Explicit configuration file. When ``None`` the site folder's
        ``sitepress.yaml`` is used if present.
    engine : str or None, optional
        Name of the template engine, overriding the configured one.
    watch : bool, optional
        Rebuild on changes until interrupted.
    verbose : bool, optional
        Enable debug logging.

    Raises
    ------
    SystemExit
        With status 1 when the configuration is invalid or a transform
        failure aborts the build.
    """
    _configure_logging(verbose=verbose)
    try:
        site = load_site_config(
            input_dir, config_path=config, overrides={"engine": engine}
        )
        pipeline = Pipeline(site)
    except ConfigurationError as exc:
        print(f"sitepress: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        asyncio.run(_run(pipeline, output_dir, watch=watch))
    except SitepressError as exc:
        print(f"sitepress: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("stopped")


def main() -> None:
    """Invoke the Cyclopts application that powers the ``sitepress`` command.

    Examples
    --------
    >>> main()  # doctest: +SKIP
    """
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
