"""Minimal engine substituting ``$name`` placeholders in the page body.

It declares no capabilities, so layouts, fragments, helpers, and filters are
never loaded for it and every page renders standalone.
"""

from __future__ import annotations

import logging
import string
import typing as typ

from sitepress.errors import AssetLoadError, RenderError

from .errors import ErrorPages

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sitepress.context import ContextSnapshot
    from sitepress.models import PageRecord

    from .base import Capability

logger = logging.getLogger(__name__)


class PlainRenderer:
    """Render pages with :class:`string.Template` substitution."""

    name = "plain"
    capabilities: frozenset[Capability] = frozenset()

    def __init__(self, *, error_pages: ErrorPages | None = None) -> None:
        self.error_pages = error_pages or ErrorPages()

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def create_environment(
        self,
        *,
        fragments: cabc.Mapping[str, str],
        helpers: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
        filters: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
    ) -> None:
        return None

    def compile_layout(self, environment: None, name: str, source: str) -> typ.NoReturn:
        raise AssetLoadError(name, "the plain engine does not support layouts")

    def render(
        self,
        body: str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        """Substitute ``$name`` placeholders; unknown names render an error page."""
        try:
            return string.Template(body).substitute(data)
        except (KeyError, ValueError) as exc:
            logger.warning("Failed to render %s: %s", record.source, exc)
            error = RenderError(f"Unknown or invalid placeholder: {exc}")
            return self.error_pages.page(error, record)

    def render_error(
        self,
        error: BaseException | str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        return self.error_pages.page(error, record)


__all__ = ["PlainRenderer"]
