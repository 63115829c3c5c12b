"""Two-phase page compilation: parse everything, then build everything.

A build pass runs in three steps.

1. **Collecting.** The pass waits on the render context's readiness gate and
   keeps the snapshot it gets for every later step, so a refresh landing
   mid-pass never mixes generations. Every source document is fanned out
   per locale and parsed in its own task.
2. **Barrier.** The pass waits for all parse tasks and then for collection
   synthesis. Only then is the page list complete.
3. **Building.** Every record renders concurrently with the complete list
   injected as ``pages``, and the finished pages go to the sink.

Passes never overlap. Progress is published to subscribers as
:class:`Phase` signals.

Example
-------
>>> import asyncio
>>> from pathlib import Path
>>> from sitepress.config import load_site_config
>>> from sitepress.sinks import MemorySink
>>> pipeline = Pipeline(load_site_config(Path("site")))  # doctest: +SKIP
>>> summary = asyncio.run(pipeline.build(MemorySink()))  # doctest: +SKIP
>>> summary.message  # doctest: +SKIP
'3 pages built.'
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import enum
import logging
import typing as typ

from ._tasks import cancel_all, gather_or_cancel
from .builder import PageBuilder
from .collections import CollectionBuilder
from .context import RenderContext
from .engines import load_engine
from .locales import LocaleExpander
from .parser import PageParser
from .refresher import Refresher
from .sources import iter_source_documents
from .transforms import TransformPipeline

if typ.TYPE_CHECKING:
    from .config import SiteConfig
    from .context import ContextSnapshot
    from .engines.base import Renderer
    from .models import BuildSummary, PageRecord, SourceDocument
    from .plugins import PluginRegistry
    from .sinks import Sink

logger = logging.getLogger(__name__)

Sources = cabc.Iterable["SourceDocument"] | cabc.AsyncIterable["SourceDocument"]


class Phase(enum.StrEnum):
    """Signals published to pipeline subscribers."""

    READY = "ready"
    PARSING = "parsing"
    BUILDING = "building"
    BUILT = "built"
    ERROR = "error"


class PassState(enum.StrEnum):
    """Where the current build pass is."""

    COLLECTING = "collecting"
    BUILDING = "building"
    DONE = "done"


Listener = typ.Callable[[Phase, object], None]


async def _aiter(sources: Sources) -> cabc.AsyncIterator[SourceDocument]:
    if isinstance(sources, cabc.AsyncIterable):
        async for document in sources:
            yield document
    else:
        for document in sources:
            yield document


class Pipeline:
    """Own the render context and run build passes against it.

    Parameters
    ----------
    config : SiteConfig
        Validated site configuration.
    renderer : Renderer, optional
        Engine to render with; loaded from ``config.engine`` when omitted.
    transforms : TransformPipeline, optional
        Shared by parsing (``before`` steps) and building (``after`` steps).
    registry : PluginRegistry, optional
        Overrides the plugin registry built from ``config``.

    Raises
    ------
    ConfigurationError
        If ``config.engine`` names no known engine.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        renderer: Renderer | None = None,
        transforms: TransformPipeline | None = None,
        registry: PluginRegistry | None = None,
    ) -> None:
        self.config = config
        self.renderer = renderer or load_engine(config.engine)
        self.transforms = transforms or TransformPipeline()
        self.context = RenderContext()
        self.refresher = Refresher(
            config,
            self.context,
            self.renderer,
            registry=registry,
            on_ready=self._on_refreshed,
        )
        self.parser = PageParser(config, self.transforms)
        self.expander = LocaleExpander(config.default_locale)
        self.collections = CollectionBuilder(config, self.parser, self.expander)
        self.builder = PageBuilder(config, self.renderer, self.transforms)
        self.state: PassState | None = None
        self._listeners: list[Listener] = []
        self._pass_lock = asyncio.Lock()

    def subscribe(self, listener: Listener) -> typ.Callable[[], None]:
        """Register ``listener(phase, payload)`` and return a function removing it.

        Payloads: the snapshot for ``READY``, ``None`` for ``PARSING``, the
        record count for ``BUILDING``, the summary for ``BUILT``, and the
        exception for ``ERROR``.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, phase: Phase, payload: object = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(phase, payload)
            except Exception:  # noqa: BLE001 - subscribers cannot break a pass
                logger.exception("Listener failed on '%s' signal", phase)

    def _on_refreshed(self, snapshot: ContextSnapshot) -> None:
        self._emit(Phase.READY, snapshot)

    async def refresh(self) -> ContextSnapshot:
        """Rebuild the render context; see :meth:`Refresher.refresh`."""
        return await self.refresher.refresh()

    def request_refresh(self) -> asyncio.Task[ContextSnapshot]:
        """Schedule a coalesced refresh; see :meth:`Refresher.request_refresh`."""
        return self.refresher.request_refresh()

    async def on_ready(self) -> None:
        """Return once the render context is ready."""
        await self.context.on_ready()

    async def build(self, sink: Sink, sources: Sources | None = None) -> BuildSummary:
        """Build the site's pages into ``sink``.

        Sources default to every file under the pages root matching
        ``config.source_pattern``. A pipeline that has never been refreshed
        refreshes first.
        """
        if not self.context.generation and not self.refresher.in_progress:
            await self.refresh()
        if sources is None:
            sources = iter_source_documents(
                self.config.pages_root, self.config.source_pattern
            )
        return await self.run(sources, sink)

    async def run(self, sources: Sources, sink: Sink) -> BuildSummary:
        """Run one build pass over ``sources``.

        Raises
        ------
        TransformError
            Only under the ``"abort"`` transform failure policy.
        """
        async with self._pass_lock:
            try:
                summary = await self._run_pass(sources, sink)
            except Exception as exc:
                self.state = PassState.DONE
                self._emit(Phase.ERROR, exc)
                raise
        logger.info(summary.message)
        return summary

    async def _run_pass(self, sources: Sources, sink: Sink) -> BuildSummary:
        self.state = PassState.COLLECTING
        self._emit(Phase.PARSING)
        snapshot = await self.context.current()
        tasks: list[asyncio.Future[list[PageRecord]]] = []
        try:
            async for document in _aiter(sources):
                task = asyncio.ensure_future(self._parse_source(document, snapshot))
                tasks.append(task)
        except BaseException:
            await cancel_all(tasks)
            raise
        parsed = await gather_or_cancel(tasks)
        synthetic = await self.collections.build(snapshot)
        records = self._unique(
            [*(record for group in parsed for record in group), *synthetic]
        )

        self.state = PassState.BUILDING
        self._emit(Phase.BUILDING, len(records))
        summary = await self.builder.build(records, snapshot, sink)
        self.state = PassState.DONE
        self._emit(Phase.BUILT, summary)
        return summary

    async def _parse_source(
        self, document: SourceDocument, snapshot: ContextSnapshot
    ) -> list[PageRecord]:
        copies = self.expander.expand(document, snapshot)
        return await gather_or_cancel(
            [
                asyncio.ensure_future(self.parser.parse(copy, snapshot))
                for copy in copies
            ]
        )

    def _unique(self, records: cabc.Iterable[PageRecord]) -> list[PageRecord]:
        """Drop records whose final output path is already taken; first wins."""
        seen: dict[str, PageRecord] = {}
        for record in records:
            key = str(self.builder.output_path_for(record))
            if key in seen:
                logger.warning(
                    "Both %s and %s produce %s; keeping the first",
                    seen[key].source,
                    record.source,
                    key,
                )
                continue
            seen[key] = record
        return list(seen.values())


__all__ = ["Listener", "PassState", "Phase", "Pipeline", "Sources"]
