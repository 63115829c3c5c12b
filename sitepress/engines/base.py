"""The renderer contract every template engine implements.

Engines are independent classes rather than subclasses of a shared base.
Each declares the capabilities it supports. The refresher only loads the
asset kinds an engine can use, so a site rendered by an engine without
layouts never compiles one.
"""

from __future__ import annotations

import enum
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sitepress.context import ContextSnapshot
    from sitepress.models import PageRecord


class Capability(enum.StrEnum):
    """Optional features a template engine may support."""

    LAYOUTS = "layouts"
    FRAGMENTS = "fragments"
    HELPERS = "helpers"
    FILTERS = "filters"


@typ.runtime_checkable
class Renderer(typ.Protocol):
    """Compile page bodies, layouts, and data into output text.

    ``render`` and ``render_error`` never raise for a fault in a single
    page's template or data. They return an error document carrying
    :data:`~sitepress._constants.ERROR_MARKER` instead.
    """

    name: str
    capabilities: frozenset[Capability]

    def supports(self, capability: Capability) -> bool:
        """Return ``True`` when ``capability`` is in ``capabilities``."""
        ...

    def create_environment(
        self,
        *,
        fragments: cabc.Mapping[str, str],
        helpers: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
        filters: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
    ) -> typ.Any:
        """Return engine state bound to one generation of fragments and helpers."""
        ...

    def compile_layout(self, environment: typ.Any, name: str, source: str) -> typ.Any:
        """Compile one layout, raising ``AssetLoadError`` when it is malformed."""
        ...

    def render(
        self,
        body: str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        """Render ``body`` with ``data`` inside the record's layout."""
        ...

    def render_error(
        self,
        error: BaseException | str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        """Render an error representation of ``record``."""
        ...


__all__ = ["Capability", "Renderer"]
