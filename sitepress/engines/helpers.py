"""Built-in template helpers: markdown, highlighted code, page checks, translation.

The markdown and code helpers wrap :class:`HtmlContentRenderer`, which renders
fenced markdown with Pygments highlighting and tags every highlighted block
with a ``data-language`` attribute. ``is_page`` and ``translate`` are bound
per page by the parser because their result depends on the page being
rendered.
"""

from __future__ import annotations

import re
import typing as typ
from html import escape

from markdown import Markdown
from markupsafe import Markup
from pygments import highlight
from pygments.formatters.html import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from sitepress._merge import lookup_path

if typ.TYPE_CHECKING:
    import collections.abc as cabc

FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})[ \t]*([\w+#.-]*)(.*)$")
HIGHLIGHT_OPEN_TAG = '<div class="codehilite">'
MARKDOWN_EXTENSIONS = ("fenced_code", "codehilite", "tables", "sane_lists")


def _language_tag(language: str) -> str:
    return f'<div class="codehilite" data-language="{escape(language, quote=True)}">'


class HtmlContentRenderer:
    """Render markdown and code snippets with one Pygments style.

    Parameters
    ----------
    pygments_style : str, optional
        Pygments style used for highlighted blocks and :attr:`stylesheet`.
    """

    def __init__(self, pygments_style: str = "monokai") -> None:
        self.pygments_style = pygments_style
        self._formatter = HtmlFormatter(style=pygments_style, cssclass="codehilite")

    @property
    def stylesheet(self) -> str:
        """Return the CSS rules for ``.codehilite`` blocks."""
        return self._formatter.get_style_defs(".codehilite")

    def markdown(self, text: str) -> str:
        """Render markdown to HTML, highlighting fenced blocks by language."""
        source, languages = self.clean_fences(text)
        if not source.strip():
            return ""
        converter = Markdown(
            extensions=list(MARKDOWN_EXTENSIONS),
            extension_configs={
                "codehilite": {
                    "css_class": "codehilite",
                    "guess_lang": False,
                    "pygments_style": self.pygments_style,
                }
            },
        )
        html = converter.convert(source)
        if not languages:
            return html
        tags = iter(languages)
        return re.sub(
            re.escape(HIGHLIGHT_OPEN_TAG),
            lambda _match: _language_tag(next(tags, "text")),
            html,
            count=len(languages),
        )

    def code_block(self, code: str, language: str | None = None) -> str:
        """Highlight ``code`` as ``language``; unknown lexers fall back to text.

        Examples
        --------
        >>> html = HtmlContentRenderer().code_block("x = 1", "python")
        >>> 'data-language="python"' in html
        True
        """
        name = language or "text"
        try:
            lexer = get_lexer_by_name(name)
        except ClassNotFound:
            lexer = get_lexer_by_name("text")
        html = highlight(code.strip("\n"), lexer, self._formatter)
        return html.replace(HIGHLIGHT_OPEN_TAG, _language_tag(name), 1)

    @staticmethod
    def clean_fences(text: str) -> tuple[str, list[str]]:
        """Normalize fence lines and list the language of every fenced block.

        Opening fences lose their indentation and anything after the language
        name (``rust,no_run`` becomes ``rust``), which the markdown fenced
        code extension would otherwise reject.

        Examples
        --------
        >>> HtmlContentRenderer.clean_fences("  ```rust,no_run\\nfn main() {}\\n  ```")
        ('```rust\\nfn main() {}\\n```', ['rust'])
        """
        lines: list[str] = []
        languages: list[str] = []
        opener: str | None = None
        for line in text.splitlines():
            match = FENCE_PATTERN.match(line)
            if match is None:
                lines.append(line)
                continue
            marker, language, rest = match.groups()
            if opener is None:
                opener = marker
                languages.append(language or "text")
                lines.append(f"{marker}{language}")
            elif (
                marker[0] == opener[0]
                and len(marker) >= len(opener)
                and not language
                and not rest.strip()
            ):
                opener = None
                lines.append(marker)
            else:
                lines.append(line)
        return "\n".join(lines), languages


def builtin_helpers(
    content_renderer: HtmlContentRenderer | None = None,
) -> dict[str, cabc.Callable[..., typ.Any]]:
    """Return the global helpers registered before any plugin helpers."""
    content = content_renderer or HtmlContentRenderer()

    def markdown(text: object) -> Markup:
        return Markup(content.markdown(str(text)))

    def code(text: object, language: str | None = None) -> Markup:
        return Markup(content.code_block(str(text), language))

    def code_styles() -> Markup:
        return Markup(content.stylesheet)

    return {"markdown": markdown, "code": code, "code_styles": code_styles}


def builtin_filters(
    content_renderer: HtmlContentRenderer | None = None,
) -> dict[str, cabc.Callable[..., typ.Any]]:
    """Return the filters registered before any plugin filters."""
    helpers = builtin_helpers(content_renderer)
    return {"markdown": helpers["markdown"], "code": helpers["code"]}


def make_is_page(page_name: str) -> cabc.Callable[..., bool]:
    """Return a helper reporting whether the current page is one of ``names``.

    Examples
    --------
    >>> is_page = make_is_page("index")
    >>> is_page("about", "index")
    True
    """

    def is_page(*names: str) -> bool:
        return page_name in names

    return is_page


def make_translate(
    locale_data: cabc.Mapping[str, typ.Any], locale: str
) -> cabc.Callable[[str], typ.Any]:
    """Return a helper looking up dotted keys in one locale's translation table.

    Missing keys render as the key itself so untranslated strings stay
    visible.

    Examples
    --------
    >>> t = make_translate({"jp": {"nav": {"home": "ホーム"}}}, "jp")
    >>> t("nav.home"), t("nav.missing")
    ('ホーム', 'nav.missing')
    """
    table = locale_data.get(locale, {})

    def translate(key: str) -> typ.Any:
        value = lookup_path(table, key)
        return key if value is None else value

    return translate


__all__ = [
    "FENCE_PATTERN",
    "HtmlContentRenderer",
    "builtin_filters",
    "builtin_helpers",
    "make_is_page",
    "make_translate",
]
