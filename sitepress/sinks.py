"""Destinations for finished pages."""

from __future__ import annotations

import asyncio
import typing as typ
from pathlib import Path, PurePosixPath

if typ.TYPE_CHECKING:
    from .models import FinishedPage


@typ.runtime_checkable
class Sink(typ.Protocol):
    """Anything that accepts finished pages one at a time."""

    async def emit(self, page: FinishedPage) -> None:
        """Store or forward ``page``."""
        ...


class DirectorySink:
    """Write finished pages beneath ``output_root``, creating folders as needed.

    Attributes
    ----------
    written : list[Path]
        Files written so far, in completion order.
    """

    def __init__(self, output_root: Path) -> None:
        self.output_root = output_root
        self.written: list[Path] = []

    async def emit(self, page: FinishedPage) -> None:
        destination = self.output_root / page.output_path
        await asyncio.to_thread(self._write, destination, page.content)
        self.written.append(destination)

    @staticmethod
    def _write(destination: Path, content: str) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content, encoding="utf-8")


class MemorySink:
    """Keep finished pages in memory, keyed by output path.

    Examples
    --------
    >>> sink = MemorySink()
    >>> sink.paths()
    []
    """

    def __init__(self) -> None:
        self.pages: dict[PurePosixPath, FinishedPage] = {}

    async def emit(self, page: FinishedPage) -> None:
        self.pages[page.output_path] = page

    def paths(self) -> list[str]:
        """Return the stored output paths as sorted POSIX strings."""
        return sorted(str(path) for path in self.pages)

    def __getitem__(self, path: str | PurePosixPath) -> str:
        return self.pages[PurePosixPath(path)].content

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str | PurePosixPath):
            return False
        return PurePosixPath(path) in self.pages

    def __len__(self) -> int:
        return len(self.pages)


__all__ = ["DirectorySink", "MemorySink", "Sink"]
