"""Exception hierarchy for the page-compilation pipeline.

Only :class:`ConfigurationError` is fatal: it is raised while a pipeline is
being constructed and stops the process. Every other error is recovered
locally. Asset errors are logged during a refresh, parse and layout errors
become in-page error output, and transform errors follow the configured
failure policy. A render context whose first refresh failed raises
:class:`RefreshError` to the pages waiting on it.
"""

from __future__ import annotations


class SitepressError(Exception):
    """Base class for all sitepress errors."""


class ConfigurationError(SitepressError, ValueError):
    """Raised when the site configuration is invalid or incomplete."""


class AssetLoadError(SitepressError):
    """Raised when a layout, data, plugin, or collection file cannot be loaded."""

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class LayoutResolutionError(SitepressError, LookupError):
    """Raised when a page resolves to a layout that does not exist."""

    def __init__(self, layout: str) -> None:
        self.layout = layout
        if layout == "default":
            msg = 'You must have a layout named "default".'
        else:
            msg = f'No layout named "{layout}" exists.'
        super().__init__(msg)


class RefreshError(SitepressError):
    """Raised to readers of a render context that has no snapshot to offer."""


class RenderError(SitepressError):
    """Raised inside an engine when a page template fails to render."""


class TransformError(SitepressError):
    """Raised when a content transform step fails."""

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        super().__init__(f"Transform '{step}' failed: {cause}")


__all__ = [
    "AssetLoadError",
    "ConfigurationError",
    "LayoutResolutionError",
    "RefreshError",
    "RenderError",
    "SitepressError",
    "TransformError",
]
