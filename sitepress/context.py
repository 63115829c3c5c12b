"""Render-context cache shared by every page of a build.

The cache is an immutable :class:`ContextSnapshot` held by a
:class:`RenderContext`. A refresh never edits the current snapshot: it builds
a new one and swaps it in, so a page that captured the previous snapshot keeps
reading consistent maps while the refresh runs. ``RenderContext`` adds the
readiness gate that parse tasks wait on.

Example
-------
>>> import asyncio
>>> context = RenderContext()
>>> context.ready
False
>>> context.publish(EMPTY_SNAPSHOT)
>>> asyncio.run(context.on_ready())
>>> context.ready
True
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ
from types import MappingProxyType

from .errors import RefreshError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

CollectionTransform = typ.Callable[["Path", "str | None"], typ.Any]


@dc.dataclass(slots=True, frozen=True)
class CollectionDefinition:
    """A rule synthesizing pages from non-page source files.

    Attributes
    ----------
    name : str
        Collection folder name.
    input_glob : str
        Pattern, relative to the input root, selecting the source files.
    output_dir : str
        Folder, relative to the output root, receiving the generated pages.
    transform : Callable[[Path, str | None], Any]
        Maps one matched path (and its contents when read) to the generated
        page's ``name`` and ``data``.
    template_body : str
        Template shared by every page of the collection.
    read_source_contents : bool
        Whether matched files are read before calling ``transform``.
    """

    name: str
    input_glob: str
    output_dir: str
    transform: CollectionTransform
    template_body: str
    read_source_contents: bool = True


def _empty_mapping() -> cabc.Mapping[str, typ.Any]:
    return MappingProxyType({})


@dc.dataclass(slots=True, frozen=True)
class ContextSnapshot:
    """One fully populated generation of the render context."""

    layouts: cabc.Mapping[str, typ.Any] = dc.field(default_factory=_empty_mapping)
    fragments: cabc.Mapping[str, str] = dc.field(default_factory=_empty_mapping)
    helpers: cabc.Mapping[str, cabc.Callable[..., typ.Any]] = dc.field(
        default_factory=_empty_mapping
    )
    filters: cabc.Mapping[str, cabc.Callable[..., typ.Any]] = dc.field(
        default_factory=_empty_mapping
    )
    global_data: cabc.Mapping[str, typ.Any] = dc.field(default_factory=_empty_mapping)
    locales: tuple[str, ...] = ()
    locale_data: cabc.Mapping[str, typ.Any] = dc.field(default_factory=_empty_mapping)
    collections: cabc.Mapping[str, CollectionDefinition] = dc.field(
        default_factory=_empty_mapping
    )
    environment: typ.Any = None

    @classmethod
    def freeze(
        cls,
        *,
        layouts: cabc.Mapping[str, typ.Any],
        fragments: cabc.Mapping[str, str],
        helpers: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
        filters: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
        global_data: cabc.Mapping[str, typ.Any],
        locales: cabc.Iterable[str],
        locale_data: cabc.Mapping[str, typ.Any],
        collections: cabc.Mapping[str, CollectionDefinition],
        environment: typ.Any = None,
    ) -> ContextSnapshot:
        """Build a snapshot whose top-level maps are read-only copies."""
        return cls(
            layouts=MappingProxyType(dict(layouts)),
            fragments=MappingProxyType(dict(fragments)),
            helpers=MappingProxyType(dict(helpers)),
            filters=MappingProxyType(dict(filters)),
            global_data=MappingProxyType(dict(global_data)),
            locales=tuple(locales),
            locale_data=MappingProxyType(dict(locale_data)),
            collections=MappingProxyType(dict(collections)),
            environment=environment,
        )

    @property
    def localized(self) -> bool:
        """Return ``True`` when at least one locale is configured."""
        return bool(self.locales)


EMPTY_SNAPSHOT = ContextSnapshot()


class RenderContext:
    """Hold the current snapshot and gate readers on its readiness.

    A new context is not ready; one refresh must publish a snapshot before
    any page is parsed or built. If that first refresh fails, readers are
    released with :class:`~sitepress.errors.RefreshError` instead.
    """

    def __init__(self) -> None:
        self._snapshot = EMPTY_SNAPSHOT
        self._ready = asyncio.Event()
        self._failure: BaseException | None = None
        self.generation = 0

    @property
    def ready(self) -> bool:
        """Return ``True`` when a usable snapshot is published and no refresh runs."""
        return self._ready.is_set() and self._failure is None

    @property
    def snapshot(self) -> ContextSnapshot:
        """Return the most recently published snapshot.

        Callers must ``await on_ready()`` first; while a refresh runs this is
        still the previous generation.
        """
        return self._snapshot

    async def on_ready(self) -> None:
        """Return once no refresh is running, whether or not the last one succeeded."""
        await self._ready.wait()

    async def current(self) -> ContextSnapshot:
        """Wait for readiness and return the snapshot published at that point.

        Raises
        ------
        RefreshError
            If no snapshot was ever published because the refresh failed.
        """
        await self.on_ready()
        if self._failure is not None:
            msg = f"The render context could not be built: {self._failure!r}"
            raise RefreshError(msg) from self._failure
        return self._snapshot

    def invalidate(self) -> None:
        """Mark the context as being rebuilt so new readers queue."""
        self._failure = None
        self._ready.clear()

    def publish(self, snapshot: ContextSnapshot, *, ready: bool = True) -> None:
        """Swap in ``snapshot`` and, when ``ready``, release waiting readers."""
        self._snapshot = snapshot
        self._failure = None
        self.generation += 1
        if ready:
            self._ready.set()

    def release(self) -> None:
        """Reopen the gate on the current snapshot without replacing it."""
        self._ready.set()

    def fail(self, error: BaseException) -> None:
        """Release waiting readers with ``error`` when there is no snapshot to offer."""
        self._failure = error
        self._ready.set()


__all__ = [
    "EMPTY_SNAPSHOT",
    "CollectionDefinition",
    "CollectionTransform",
    "ContextSnapshot",
    "RenderContext",
]
