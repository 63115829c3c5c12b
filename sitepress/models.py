"""Shared dataclasses used by the page-compilation pipeline."""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path, PurePosixPath

from ._constants import ERROR_MARKER


@dc.dataclass(slots=True, frozen=True)
class ParseErrorInfo:
    """Describe why a source document's metadata block could not be read.

    Attributes
    ----------
    tag : str
        Short machine-readable tag such as ``"metadata-syntax-error"``.
    message : str
        Human-readable description shown in the rendered error banner.
    """

    tag: str
    message: str


@dc.dataclass(slots=True)
class SourceDocument:
    """A raw document handed to the pipeline by a source loader.

    Attributes
    ----------
    identity : Path
        Where the document came from; used in logs and error pages.
    path : PurePosixPath
        Location relative to the pages root. Layout folder mappings match
        against this path.
    raw : bytes
        Undecoded document contents, front matter included.
    data : dict[str, Any]
        Data attached by an upstream stage (collections attach their
        transform output here).
    locale : str or None
        Locale tag assigned by :class:`~sitepress.locales.LocaleExpander`.
    target : PurePosixPath or None
        Output location when it differs from ``path`` (locale copies).
    synthetic : bool
        ``True`` for documents generated by a collection.
    """

    identity: Path
    path: PurePosixPath
    raw: bytes
    data: dict[str, typ.Any] = dc.field(default_factory=dict)
    locale: str | None = None
    target: PurePosixPath | None = None
    synthetic: bool = False

    @property
    def output_path(self) -> PurePosixPath:
        """Return the output location before its extension is normalized."""
        return self.target if self.target is not None else self.path

    @property
    def text(self) -> str:
        """Return the contents decoded as UTF-8 with any BOM removed."""
        return self.raw.decode("utf-8-sig", errors="replace")


@dc.dataclass(slots=True, frozen=True)
class PageRecord:
    """One unit of build work, immutable once parsed.

    Attributes
    ----------
    source : Path
        Identity of the source document the record was parsed from.
    output_path : PurePosixPath
        Path relative to the output root; unique within a build pass.
    body : str
        Page template body with the metadata block removed.
    front_matter : dict[str, Any]
        Attributes declared in the metadata block.
    data : dict[str, Any]
        Fully assembled data context, constants included.
    page : str
        Base name of the document without extension.
    layout : str
        Resolved layout name; never empty.
    root_prefix : str
        Relative prefix from the page back to the site root.
    locale : str or None
        Locale tag when the site is localized.
    parse_error : ParseErrorInfo or None
        Set when the metadata block was malformed.
    synthetic : bool
        ``True`` for pages generated by a collection.
    """

    source: Path
    output_path: PurePosixPath
    body: str
    front_matter: dict[str, typ.Any]
    data: dict[str, typ.Any]
    page: str
    layout: str
    root_prefix: str
    locale: str | None = None
    parse_error: ParseErrorInfo | None = None
    synthetic: bool = False


@dc.dataclass(slots=True, frozen=True)
class FinishedPage:
    """Rendered output ready for a sink."""

    output_path: PurePosixPath
    content: str
    record: PageRecord

    @property
    def has_error(self) -> bool:
        """Return ``True`` when the content carries the render error marker."""
        return ERROR_MARKER in self.content


@dc.dataclass(slots=True, frozen=True)
class BuildSummary:
    """Totals reported at the end of a build pass."""

    page_count: int
    error_count: int

    @property
    def message(self) -> str:
        """Return a one-line summary suitable for terminal output."""
        noun = "page" if self.page_count == 1 else "pages"
        text = f"{self.page_count} {noun} built"
        if self.error_count:
            text += f", {self.error_count} had errors"
        return text + "."


__all__ = [
    "BuildSummary",
    "FinishedPage",
    "PageRecord",
    "ParseErrorInfo",
    "SourceDocument",
]
