"""Typed dataclasses describing sitepress site configuration."""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path, PurePath

from sitepress._constants import PAGE_EXTENSION
from sitepress.errors import ConfigurationError

TransformFailurePolicy = typ.Literal["isolate", "abort"]
TRANSFORM_FAILURE_POLICIES: tuple[str, ...] = ("isolate", "abort")


@dc.dataclass(slots=True, frozen=True)
class TransformStep:
    """A named content processor plus the extra arguments passed to it."""

    name: str
    args: tuple[typ.Any, ...] = ()


@dc.dataclass(slots=True)
class TransformRule:
    """Transforms applied to one file extension before and after rendering."""

    before: list[TransformStep] = dc.field(default_factory=list)
    after: list[TransformStep] = dc.field(default_factory=list)


@dc.dataclass(slots=True)
class SiteConfig:
    """A fully resolved site definition.

    Folder attributes hold names relative to ``input_root``; the ``*_root``
    properties join them into absolute locations.
    """

    input_root: Path
    pages: str = "pages"
    layouts: str = "layouts"
    fragments: str = "partials"
    helpers: str = "helpers"
    data: str = "data"
    locales: str = "locales"
    collections: str = "collections"
    engine: str = "jinja"
    page_layouts: dict[str, str] = dc.field(default_factory=dict)
    default_locale: str | None = None
    plugins: list[str] = dc.field(default_factory=list)
    transforms: dict[str, TransformRule] = dc.field(default_factory=dict)
    transform_failures: TransformFailurePolicy = "isolate"
    page_extension: str = PAGE_EXTENSION
    builtins: bool = True
    source_pattern: str = "**/*.*"

    @property
    def pages_root(self) -> Path:
        """Return the directory holding source pages."""
        return self.input_root / self.pages

    @property
    def layouts_root(self) -> Path:
        """Return the directory holding layouts."""
        return self.input_root / self.layouts

    @property
    def fragments_root(self) -> Path:
        """Return the directory holding fragments."""
        return self.input_root / self.fragments

    @property
    def helpers_root(self) -> Path:
        """Return the directory holding helper plugin modules."""
        return self.input_root / self.helpers

    @property
    def data_root(self) -> Path:
        """Return the directory holding global data files."""
        return self.input_root / self.data

    @property
    def locales_root(self) -> Path:
        """Return the directory holding per-locale translation tables."""
        return self.input_root / self.locales

    @property
    def collections_root(self) -> Path:
        """Return the directory holding collection folders."""
        return self.input_root / self.collections

    def asset_roots(self) -> dict[str, Path]:
        """Return every supporting directory a refresh scans, keyed by role."""
        return {
            "layouts": self.layouts_root,
            "fragments": self.fragments_root,
            "helpers": self.helpers_root,
            "data": self.data_root,
            "locales": self.locales_root,
            "collections": self.collections_root,
        }

    def transform_rule(self, path: PurePath) -> TransformRule | None:
        """Return the transform rule matching the extension of ``path``."""
        return self.transforms.get(path.suffix)

    def validate(self) -> None:
        """Raise ``ConfigurationError`` when required inputs are absent."""
        if not self.input_root.is_dir():
            msg = f"Input directory '{self.input_root}' not found."
            raise ConfigurationError(msg)
        if not self.pages_root.is_dir():
            msg = f"Pages directory '{self.pages_root}' not found."
            raise ConfigurationError(msg)
        if self.transform_failures not in TRANSFORM_FAILURE_POLICIES:
            allowed = ", ".join(TRANSFORM_FAILURE_POLICIES)
            msg = (
                f"Unknown transform_failures policy '{self.transform_failures}'."
                f" Expected one of: {allowed}"
            )
            raise ConfigurationError(msg)
        if not self.page_extension.startswith("."):
            msg = f"page_extension must start with '.', got '{self.page_extension}'."
            raise ConfigurationError(msg)


__all__ = [
    "TRANSFORM_FAILURE_POLICIES",
    "SiteConfig",
    "TransformFailurePolicy",
    "TransformRule",
    "TransformStep",
]
