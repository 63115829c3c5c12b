"""Jinja2 engine supporting layouts, fragments, helpers, and filters."""

from __future__ import annotations

import logging
import typing as typ

from jinja2 import DictLoader, Environment, TemplateSyntaxError
from markupsafe import Markup

from sitepress._constants import DEFAULT_LAYOUT
from sitepress.errors import AssetLoadError, LayoutResolutionError

from .base import Capability
from .errors import ErrorPages

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from jinja2 import Template

    from sitepress.context import ContextSnapshot
    from sitepress.models import PageRecord

logger = logging.getLogger(__name__)


class JinjaRenderer:
    """Render pages as Jinja templates wrapped in Jinja layouts.

    The page body is rendered first with the page data; the result is passed
    to the layout as ``body``. Fragments are available to ``{% include %}``
    and ``{% import %}`` by their name relative to the fragments folder.
    """

    name = "jinja"
    capabilities = frozenset(Capability)

    def __init__(self, *, error_pages: ErrorPages | None = None) -> None:
        self.error_pages = error_pages or ErrorPages()

    def supports(self, capability: Capability) -> bool:
        """Return ``True`` when ``capability`` is in ``capabilities``."""
        return capability in self.capabilities

    def create_environment(
        self,
        *,
        fragments: cabc.Mapping[str, str],
        helpers: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
        filters: cabc.Mapping[str, cabc.Callable[..., typ.Any]],
    ) -> Environment:
        """Return a fresh environment for one generation of the render context.

        Each refresh gets its own environment, so pages still rendering
        against the previous generation never see a half-replaced fragment
        or helper.
        """
        env = Environment(
            loader=DictLoader(dict(fragments)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.globals.update(helpers)
        env.filters.update(filters)
        return env

    def compile_layout(self, environment: Environment, name: str, source: str) -> Template:
        """Compile ``source`` as the layout ``name``.

        Raises
        ------
        AssetLoadError
            If the layout has a template syntax error.
        """
        try:
            return environment.from_string(source)
        except TemplateSyntaxError as exc:
            msg = f"line {exc.lineno}: {exc.message}"
            raise AssetLoadError(name, msg) from exc

    def render(
        self,
        body: str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        """Render ``body`` and wrap it in the record's layout.

        A missing layout renders an error block inside whichever layout is
        still available. Any other failure renders a standalone error page.
        """
        try:
            layout = snapshot.layouts.get(record.layout)
            page_template = snapshot.environment.from_string(body)
            if layout is None:
                raise LayoutResolutionError(record.layout)
            context = dict(data)
            context["body"] = Markup(page_template.render(context))
            return layout.render(context)
        except LayoutResolutionError as exc:
            logger.warning("%s: %s", record.source, exc)
            return self.render_error(exc, data, record, snapshot)
        except Exception as exc:  # noqa: BLE001 - template faults become error pages
            logger.warning("Failed to render %s: %s", record.source, exc)
            return self.error_pages.page(exc, record)

    def render_error(
        self,
        error: BaseException | str,
        data: cabc.Mapping[str, typ.Any],
        record: PageRecord,
        snapshot: ContextSnapshot,
    ) -> str:
        """Render ``error`` as a banner inside a layout, or as a standalone page."""
        layout = _fallback_layout(snapshot, record.layout)
        if layout is None:
            return self.error_pages.page(error, record)
        context = dict(data)
        context["body"] = self.error_pages.block(error, record)
        try:
            return layout.render(context)
        except Exception as exc:  # noqa: BLE001 - a broken layout must not hide the error
            logger.debug("Layout failed while rendering an error for %s: %s", record.source, exc)
            return self.error_pages.page(error, record)


def _fallback_layout(snapshot: ContextSnapshot, preferred: str) -> Template | None:
    """Return the preferred layout, else ``default``, else any layout at all."""
    for name in (preferred, DEFAULT_LAYOUT, *sorted(snapshot.layouts)):
        layout = snapshot.layouts.get(name)
        if layout is not None:
            return layout
    return None


__all__ = ["JinjaRenderer"]
