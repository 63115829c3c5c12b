"""Forward filesystem changes under the site folders to the event loop.

watchdog delivers events on its observer thread; :class:`SiteWatcher` hands
each one to the asyncio loop with ``call_soon_threadsafe`` so callbacks
always run on the loop that owns the pipeline.
"""

from __future__ import annotations

import logging
import typing as typ
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

if typ.TYPE_CHECKING:
    import asyncio
    import collections.abc as cabc

    from watchdog.events import FileSystemEvent

logger = logging.getLogger(__name__)


class ChangeHandler(FileSystemEventHandler):
    """Report created, modified, deleted, and moved files."""

    def __init__(self, notify: cabc.Callable[[Path], None]) -> None:
        super().__init__()
        self._notify = notify

    def _forward(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = event.src_path
        if isinstance(path, bytes):
            path = path.decode()
        self._notify(Path(path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forward(event)


class SiteWatcher:
    """Watch ``roots`` recursively and call ``callback(path)`` on ``loop``.

    Roots that do not exist when the watcher starts are ignored. Use as a
    context manager so the observer thread is always joined.
    """

    def __init__(
        self,
        roots: cabc.Iterable[Path],
        callback: cabc.Callable[[Path], None],
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.roots = list(roots)
        self.callback = callback
        self.loop = loop
        self._observer: typ.Any = None

    def start(self) -> None:
        observer = Observer()
        handler = ChangeHandler(self._dispatch)
        for root in self.roots:
            if root.is_dir():
                observer.schedule(handler, str(root), recursive=True)
                logger.info("Watching %s", root)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def _dispatch(self, path: Path) -> None:
        self.loop.call_soon_threadsafe(self.callback, path)

    def __enter__(self) -> SiteWatcher:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


__all__ = ["ChangeHandler", "SiteWatcher"]
