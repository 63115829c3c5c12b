"""Fan source documents out into one copy per locale.

A site is localized when the render context lists at least one locale. A
document that already lives inside a locale folder (``jp/about.md``) belongs
to that locale alone. Any other document is copied once per locale: the
default locale keeps the original output location and every other locale's
copy moves under a folder named after it.

Example
-------
>>> from pathlib import Path
>>> from sitepress.context import ContextSnapshot
>>> from sitepress.models import SourceDocument
>>> snapshot = ContextSnapshot(locales=("en", "jp"))
>>> doc = SourceDocument(Path("about.md"), PurePosixPath("about.md"), b"")
>>> [str(copy.output_path) for copy in LocaleExpander().expand(doc, snapshot)]
['about.md', 'jp/about.md']
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import PurePosixPath

if typ.TYPE_CHECKING:
    from .context import ContextSnapshot
    from .models import SourceDocument


class LocaleExpander:
    """Assign locale tags and output locations to source documents.

    Parameters
    ----------
    default_locale : str, optional
        Locale whose copies keep the unprefixed output path. When omitted or
        not among the loaded locales, the first locale is the default.
    """

    def __init__(self, default_locale: str | None = None) -> None:
        self.default_locale = default_locale

    def default_for(self, snapshot: ContextSnapshot) -> str | None:
        """Return the effective default locale for ``snapshot``."""
        if not snapshot.locales:
            return None
        if self.default_locale in snapshot.locales:
            return self.default_locale
        return snapshot.locales[0]

    def expand(
        self, document: SourceDocument, snapshot: ContextSnapshot
    ) -> list[SourceDocument]:
        """Return the locale variants of ``document``.

        Without locales the document is returned as-is. A document whose
        first path segment names a locale yields exactly one copy tagged with
        that locale; any other yields one copy per locale.
        """
        if not snapshot.localized:
            return [document]
        parts = document.path.parts
        if len(parts) > 1 and parts[0] in snapshot.locales:
            return [dc.replace(document, locale=parts[0])]

        default = self.default_for(snapshot)
        copies: list[SourceDocument] = []
        for locale in snapshot.locales:
            if locale == default:
                target = document.output_path
            else:
                target = PurePosixPath(locale) / document.output_path
            copies.append(dc.replace(document, locale=locale, target=target))
        return copies


__all__ = ["LocaleExpander"]
