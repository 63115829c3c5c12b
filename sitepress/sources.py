"""Discover source pages on disk.

The pipeline accepts any iterable or async iterable of
:class:`~sitepress.models.SourceDocument`; this module supplies the one the
CLI uses, which globs the pages root and reads each match in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import typing as typ
from pathlib import Path, PurePosixPath

from .models import SourceDocument

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = logging.getLogger(__name__)


def make_document(
    pages_root: Path,
    path: Path,
    *,
    data: cabc.Mapping[str, typ.Any] | None = None,
) -> SourceDocument:
    """Read ``path`` into a document located relative to ``pages_root``.

    Raises
    ------
    OSError
        If the file cannot be read.
    """
    relative = PurePosixPath(path.relative_to(pages_root).as_posix())
    return SourceDocument(
        identity=path,
        path=relative,
        raw=path.read_bytes(),
        data=dict(data or {}),
    )


def discover(pages_root: Path, pattern: str) -> list[Path]:
    """Return the files under ``pages_root`` matching ``pattern``, sorted."""
    return sorted(path for path in pages_root.glob(pattern) if path.is_file())


async def iter_source_documents(
    pages_root: Path, pattern: str = "**/*.*"
) -> cabc.AsyncIterator[SourceDocument]:
    """Yield a document for every page file; unreadable files are skipped."""
    paths = await asyncio.to_thread(discover, pages_root, pattern)
    for path in paths:
        try:
            document = await asyncio.to_thread(make_document, pages_root, path)
        except OSError as exc:
            logger.warning("Skipping unreadable page %s: %s", path, exc)
            continue
        yield document


__all__ = ["discover", "iter_source_documents", "make_document"]
