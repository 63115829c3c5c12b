"""Render the error documents engines substitute for failed pages.

Every document produced here starts with
:data:`~sitepress._constants.ERROR_MARKER` so a build pass can count failed
pages by scanning output text.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from sitepress._constants import ERROR_MARKER

if typ.TYPE_CHECKING:
    from sitepress.models import PageRecord

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the path as given."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:
            return str(path)
    return str(path)


class ErrorPages:
    """Build standalone error documents and in-layout error blocks."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.env = Environment(
            loader=FileSystemLoader(templates_dir or TEMPLATES_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def page(self, error: BaseException | str, record: PageRecord) -> str:
        """Return a minimal standalone HTML document describing ``error``."""
        template = self.env.get_template("error_page.jinja")
        return template.render(**self._context(error, record))

    def block(self, error: BaseException | str, record: PageRecord) -> Markup:
        """Return an error banner meant to replace a page body inside a layout."""
        template = self.env.get_template("error_block.jinja")
        return Markup(template.render(**self._context(error, record)))

    @staticmethod
    def _context(error: BaseException | str, record: PageRecord) -> dict[str, typ.Any]:
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            detail = type(error).__name__
            lineno = getattr(error, "lineno", None)
            if lineno:
                detail = f"{detail} (line {lineno})"
        else:
            message = error
            detail = ""
        return {
            "marker": Markup(ERROR_MARKER),
            "heading": "Sitepress could not render this page",
            "file_name": _format_path(record.source),
            "message": message,
            "detail": detail,
        }


__all__ = ["ErrorPages"]
