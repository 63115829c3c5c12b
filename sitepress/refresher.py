"""Rebuild the render context from the supporting folders.

A refresh marks the context not-ready straight away, so parse tasks that
start while it runs wait for it to finish. It scans layouts, fragments,
plugins, data, locales, and collections in a worker thread and then
publishes a new snapshot in a single swap. Refreshes never overlap: a lock
runs them one after another, and :meth:`Refresher.request_refresh` folds
bursts of file events into at most one queued follow-up.

Example
-------
>>> import asyncio
>>> from pathlib import Path
>>> from sitepress.config import load_site_config
>>> from sitepress.context import RenderContext
>>> from sitepress.engines import JinjaRenderer
>>> config = load_site_config(Path("site"))  # doctest: +SKIP
>>> refresher = Refresher(config, RenderContext(), JinjaRenderer())  # doctest: +SKIP
>>> snapshot = asyncio.run(refresher.refresh())  # doctest: +SKIP
>>> sorted(snapshot.layouts)  # doctest: +SKIP
['default']
"""

from __future__ import annotations

import asyncio
import logging
import typing as typ

from .context import ContextSnapshot
from .engines.base import Capability
from .engines.helpers import HtmlContentRenderer, builtin_filters, builtin_helpers
from .errors import AssetLoadError
from .loaders import (
    load_collections,
    load_data,
    load_locales,
    read_templates,
    register_asset,
)
from .plugins import PluginRegistry

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import SiteConfig
    from .context import RenderContext
    from .engines.base import Renderer

logger = logging.getLogger(__name__)

ReadyCallback = typ.Callable[[ContextSnapshot], None]


class Refresher:
    """Populate a :class:`~sitepress.context.RenderContext` from disk.

    Parameters
    ----------
    config : SiteConfig
        Locates the supporting folders and lists plugin modules.
    context : RenderContext
        Receives each new snapshot.
    renderer : Renderer
        Decides which asset kinds are loaded and compiles layouts.
    registry : PluginRegistry, optional
        Source of helpers, filters, and collection definitions. Built from
        ``config`` when omitted.
    on_ready : Callable[[ContextSnapshot], None], optional
        Called with the published snapshot each time the context becomes
        ready again.
    """

    def __init__(
        self,
        config: SiteConfig,
        context: RenderContext,
        renderer: Renderer,
        *,
        registry: PluginRegistry | None = None,
        on_ready: ReadyCallback | None = None,
    ) -> None:
        self.config = config
        self.context = context
        self.renderer = renderer
        self.registry = registry or PluginRegistry(
            config.plugins,
            base_dir=config.input_root,
            helpers_root=config.helpers_root,
        )
        self.on_ready = on_ready
        self.content = HtmlContentRenderer()
        self._lock = asyncio.Lock()
        self._pending = 0
        self._queued: asyncio.Task[ContextSnapshot] | None = None

    @property
    def in_progress(self) -> bool:
        """Return ``True`` while a refresh is running or waiting to run."""
        return self._pending > 0

    async def refresh(self) -> ContextSnapshot:
        """Rescan every supporting folder and publish the result.

        The context stays not-ready until the last overlapping refresh has
        settled. If the scan fails or the refresh is cancelled, the previous
        snapshot is released again, or the context is failed when there is
        none, and the error propagates.
        """
        self._pending += 1
        self.context.invalidate()
        try:
            async with self._lock:
                if self._queued is asyncio.current_task():
                    self._queued = None
                snapshot = await asyncio.to_thread(self.scan)
        except BaseException as exc:
            self._pending -= 1
            self._settle_failed(exc)
            raise
        self._pending -= 1
        settled = not self._pending
        self.context.publish(snapshot, ready=settled)
        logger.info(
            "Render context refreshed: %d layouts, %d fragments, %d locales, %d collections",
            len(snapshot.layouts),
            len(snapshot.fragments),
            len(snapshot.locales),
            len(snapshot.collections),
        )
        if settled and self.on_ready is not None:
            self.on_ready(snapshot)
        return snapshot

    def _settle_failed(self, error: BaseException) -> None:
        if self._pending:
            return
        if self.context.generation:
            self.context.release()
        else:
            self.context.fail(error)

    def request_refresh(self) -> asyncio.Task[ContextSnapshot]:
        """Schedule a refresh unless one is already queued behind the current one.

        Must be called on the event loop thread. Requests arriving while a
        refresh is queued share that refresh's task.
        """
        if self._queued is not None and not self._queued.done():
            return self._queued
        task = asyncio.get_running_loop().create_task(self.refresh())
        task.add_done_callback(_log_failure)
        self._queued = task
        return task

    def scan(self) -> ContextSnapshot:
        """Read every supporting folder into a new, frozen snapshot.

        Individual malformed files are logged and skipped by the loaders.
        """
        config = self.config
        renderer = self.renderer
        contributions = self.registry.load()

        helpers: dict[str, cabc.Callable[..., typ.Any]] = {}
        filters: dict[str, cabc.Callable[..., typ.Any]] = {}
        if config.builtins:
            helpers.update(builtin_helpers(self.content))
            filters.update(builtin_filters(self.content))
        if renderer.supports(Capability.HELPERS):
            for name, helper in contributions.helpers.items():
                register_asset(helpers, name, helper, kind="helper")
        else:
            helpers = {}
        if renderer.supports(Capability.FILTERS):
            for name, function in contributions.filters.items():
                register_asset(filters, name, function, kind="filter")
        else:
            filters = {}

        fragments: dict[str, str] = {}
        if renderer.supports(Capability.FRAGMENTS):
            fragments = read_templates(
                config.fragments_root, kind="fragment", nested_names=True
            )
        environment = renderer.create_environment(
            fragments=fragments, helpers=helpers, filters=filters
        )

        layouts: dict[str, typ.Any] = {}
        if renderer.supports(Capability.LAYOUTS):
            sources = read_templates(config.layouts_root, kind="layout")
            for name, source in sources.items():
                try:
                    layouts[name] = renderer.compile_layout(environment, name, source)
                except AssetLoadError as exc:
                    logger.warning("Skipping layout: %s", exc)

        locales, locale_data = load_locales(config.locales_root)
        return ContextSnapshot.freeze(
            layouts=layouts,
            fragments=fragments,
            helpers=helpers,
            filters=filters,
            global_data=load_data(config.data_root),
            locales=locales,
            locale_data=locale_data,
            collections=load_collections(
                config.collections_root, contributions.collections
            ),
            environment=environment,
        )


def _log_failure(task: asyncio.Task[ContextSnapshot]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Refresh failed: %s", exc, exc_info=exc)


__all__ = ["ReadyCallback", "Refresher"]
