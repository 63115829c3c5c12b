"""Synthesize pages from non-page source files.

A collection pairs a glob over the input root with a transform and a shared
template. Each matched file becomes one page whose body is the template and
whose data is whatever the transform returned. Synthetic pages go through
locale fan-out and parsing like any discovered page, so they join the same
page list at the parse barrier.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import typing as typ
from pathlib import Path, PurePosixPath

from ._tasks import gather_or_cancel
from .models import SourceDocument

if typ.TYPE_CHECKING:
    from .config import SiteConfig
    from .context import CollectionDefinition, ContextSnapshot
    from .locales import LocaleExpander
    from .models import PageRecord
    from .parser import PageParser

logger = logging.getLogger(__name__)


def _unpack_result(result: object) -> tuple[str, dict[str, typ.Any]]:
    """Return the ``(name, data)`` pair a collection transform produced.

    Examples
    --------
    >>> _unpack_result({"name": "hello.md", "data": {"title": "Hi"}})
    ('hello.md', {'title': 'Hi'})
    >>> _unpack_result(("hello.md", None))
    ('hello.md', {})
    """
    match result:
        case {"name": str() as name, **rest}:
            data = rest.get("data")
        case (str() as name, data):
            pass
        case _:
            msg = f"expected {{'name': ..., 'data': ...}}, got {type(result).__name__}"
            raise TypeError(msg)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"'data' must be a dict, got {type(data).__name__}"
        raise TypeError(msg)
    return name.strip("/"), data


class CollectionBuilder:
    """Turn the collections of a render-context snapshot into page records."""

    def __init__(
        self, config: SiteConfig, parser: PageParser, expander: LocaleExpander
    ) -> None:
        self.config = config
        self.parser = parser
        self.expander = expander

    async def build(self, snapshot: ContextSnapshot) -> list[PageRecord]:
        """Return parsed records for every page every collection produces."""
        documents: list[SourceDocument] = []
        for definition in snapshot.collections.values():
            documents.extend(await self.synthesize(definition))
        expanded = [
            copy
            for document in documents
            for copy in self.expander.expand(document, snapshot)
        ]
        return await gather_or_cancel(
            [
                asyncio.ensure_future(self.parser.parse(document, snapshot))
                for document in expanded
            ]
        )

    async def synthesize(self, definition: CollectionDefinition) -> list[SourceDocument]:
        """Return one synthetic document per file matching ``definition``.

        A match whose contents cannot be read, or whose transform raises or
        returns the wrong shape, is logged and skipped.
        """
        matches = await asyncio.to_thread(self._match, definition)
        template = definition.template_body.encode("utf-8")
        documents: list[SourceDocument] = []
        for path in matches:
            try:
                name, data = await self._transform(definition, path)
            except Exception as exc:  # noqa: BLE001 - one bad match must not stop the rest
                logger.warning(
                    "Collection '%s' skipped %s: %s", definition.name, path, exc
                )
                continue
            if not name:
                logger.warning(
                    "Collection '%s' produced an empty name for %s", definition.name, path
                )
                continue
            documents.append(
                SourceDocument(
                    identity=path,
                    path=PurePosixPath(definition.output_dir) / name,
                    raw=template,
                    data=data,
                    synthetic=True,
                )
            )
        logger.debug(
            "Collection '%s' produced %d pages", definition.name, len(documents)
        )
        return documents

    def _match(self, definition: CollectionDefinition) -> list[Path]:
        try:
            return sorted(self.config.input_root.glob(definition.input_glob))
        except (ValueError, NotImplementedError) as exc:
            logger.warning(
                "Collection '%s' has an unusable input pattern '%s': %s",
                definition.name,
                definition.input_glob,
                exc,
            )
            return []

    async def _transform(
        self, definition: CollectionDefinition, path: Path
    ) -> tuple[str, dict[str, typ.Any]]:
        contents: str | None = None
        if definition.read_source_contents and not path.is_dir():
            contents = await asyncio.to_thread(path.read_text, encoding="utf-8")
        result = definition.transform(path, contents)
        if inspect.isawaitable(result):
            result = await result
        return _unpack_result(result)


__all__ = ["CollectionBuilder"]
