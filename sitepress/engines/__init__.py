"""Template engines and the registry that selects one by name."""

from __future__ import annotations

from sitepress.errors import ConfigurationError

from .base import Capability, Renderer
from .errors import ErrorPages
from .helpers import HtmlContentRenderer, builtin_filters, builtin_helpers
from .jinja import JinjaRenderer
from .plain import PlainRenderer

ENGINES: dict[str, type[JinjaRenderer] | type[PlainRenderer]] = {
    JinjaRenderer.name: JinjaRenderer,
    PlainRenderer.name: PlainRenderer,
}


def load_engine(name: str) -> Renderer:
    """Return a new renderer for the engine called ``name``.

    Raises
    ------
    ConfigurationError
        If no engine is registered under ``name``.
    """
    try:
        engine_cls = ENGINES[name]
    except KeyError as exc:
        available = ", ".join(sorted(ENGINES))
        msg = f"Could not load engine '{name}'. Known engines: {available}"
        raise ConfigurationError(msg) from exc
    return engine_cls()


__all__ = [
    "ENGINES",
    "Capability",
    "ErrorPages",
    "HtmlContentRenderer",
    "JinjaRenderer",
    "PlainRenderer",
    "Renderer",
    "builtin_filters",
    "builtin_helpers",
    "load_engine",
]
