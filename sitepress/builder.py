"""Render the complete page list of a build pass.

The builder only starts once every record of the pass exists, because each
page's data receives the full list as ``pages``. Pages render concurrently
and in no particular order; each one is rendered, post-processed by its
``after`` transforms, given the configured output extension, and emitted.
A failure in one page turns that page into an error document and never
stops the others.
"""

from __future__ import annotations

import asyncio
import logging
import typing as typ

from ._tasks import gather_or_cancel
from .engines.errors import ErrorPages
from .errors import TransformError
from .models import BuildSummary, FinishedPage

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import PurePosixPath

    from .config import SiteConfig
    from .context import ContextSnapshot
    from .engines.base import Renderer
    from .models import PageRecord
    from .sinks import Sink
    from .transforms import TransformPipeline

logger = logging.getLogger(__name__)


class PageBuilder:
    """Render, post-process, and emit page records.

    Parameters
    ----------
    config : SiteConfig
        Supplies the ``after`` transform rules, the output extension, and the
        transform failure policy.
    renderer : Renderer
        Engine that turns a record into output text.
    transforms : TransformPipeline
        Resolves and applies ``after`` transform steps.
    error_pages : ErrorPages, optional
        Used when the renderer itself raises or a transform fails.
    """

    def __init__(
        self,
        config: SiteConfig,
        renderer: Renderer,
        transforms: TransformPipeline,
        *,
        error_pages: ErrorPages | None = None,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.transforms = transforms
        self.error_pages = error_pages or ErrorPages()

    async def build(
        self,
        records: cabc.Sequence[PageRecord],
        snapshot: ContextSnapshot,
        sink: Sink,
    ) -> BuildSummary:
        """Build every record concurrently and return the pass totals.

        Raises
        ------
        TransformError
            When an ``after`` transform fails under the ``"abort"`` policy.
        """
        pages = list(records)
        finished = await gather_or_cancel(
            [
                asyncio.ensure_future(self.build_page(record, pages, snapshot, sink))
                for record in pages
            ]
        )
        errors = sum(1 for page in finished if page.has_error)
        return BuildSummary(page_count=len(finished), error_count=errors)

    async def build_page(
        self,
        record: PageRecord,
        pages: list[PageRecord],
        snapshot: ContextSnapshot,
        sink: Sink,
    ) -> FinishedPage:
        """Build one record with ``pages`` injected into its data and emit it."""
        content = self.render(record, pages, snapshot)
        content = await self.post_process(record, content)
        page = FinishedPage(
            output_path=self.output_path_for(record),
            content=content,
            record=record,
        )
        await sink.emit(page)
        return page

    def render(
        self,
        record: PageRecord,
        pages: list[PageRecord],
        snapshot: ContextSnapshot,
    ) -> str:
        """Return the rendered text for ``record``, or an error document."""
        data = dict(record.data)
        data["pages"] = pages
        try:
            if record.parse_error is not None:
                return self.renderer.render_error(
                    record.parse_error.message, data, record, snapshot
                )
            return self.renderer.render(record.body, data, record, snapshot)
        except Exception as exc:  # noqa: BLE001 - a faulty engine must not stop the pass
            logger.exception("Renderer failed on %s", record.source)
            return self.error_pages.page(exc, record)

    async def post_process(self, record: PageRecord, content: str) -> str:
        """Apply the ``after`` transforms matching the record's extension."""
        rule = self.config.transform_rule(record.output_path)
        if rule is None or not rule.after:
            return content
        try:
            return await self.transforms.apply(content, rule.after)
        except TransformError as exc:
            if self.config.transform_failures == "abort":
                raise
            logger.warning("%s: %s", record.source, exc)
            return self.error_pages.page(exc, record)

    def output_path_for(self, record: PageRecord) -> PurePosixPath:
        """Return the record's output path with the configured extension."""
        return record.output_path.with_suffix(self.config.page_extension)


__all__ = ["PageBuilder"]
