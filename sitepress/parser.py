r"""Turn raw source documents into page records.

Parsing splits the YAML front matter from the body, resolves the layout,
applies any ``before`` transforms for the document's extension, and
assembles the page's data context. A malformed metadata block does not stop
the pipeline: the record comes back with an empty body, empty attributes,
and ``parse_error`` set so the build phase renders an error banner instead.

Example
-------
>>> split_front_matter("---\ntitle: Home\n---\nHello")
({'title': 'Home'}, 'Hello')
>>> resolve_layout(PurePosixPath("blog/2024/post.md"), {}, {"blog": "post"})
'post'
"""

from __future__ import annotations

import logging
import typing as typ
from pathlib import PurePosixPath

from frontmatter.default_handlers import YAMLHandler
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ._constants import DEFAULT_LAYOUT, METADATA_SYNTAX_ERROR
from ._merge import deep_merge
from .engines.helpers import make_is_page, make_translate
from .errors import TransformError
from .models import PageRecord, ParseErrorInfo

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import SiteConfig
    from .context import ContextSnapshot
    from .models import SourceDocument
    from .transforms import TransformPipeline

logger = logging.getLogger(__name__)

TRANSFORM_ERROR = "transform-error"


class RuamelYAMLHandler(YAMLHandler):
    """Front-matter handler that parses the metadata block with ruamel.yaml."""

    def load(self, fm: str, **kwargs: object) -> typ.Any:
        loader = YAML(typ="safe")
        loader.version = (1, 2)
        return loader.load(fm)


_HANDLER = RuamelYAMLHandler()


def split_front_matter(text: str) -> tuple[dict[str, typ.Any], str]:
    """Return the front-matter attributes and the body of ``text``.

    Text that does not open with a ``---`` line has no front matter and is
    returned unchanged as the body. Otherwise the body is everything after
    the closing ``---`` line, kept byte for byte.

    Raises
    ------
    YAMLError
        If the metadata block is not valid YAML or is never closed.
    """
    if not _HANDLER.detect(text):
        return {}, text
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines[1:], start=1):
        if _HANDLER.FM_BOUNDARY.fullmatch(line.rstrip("\r\n")):
            break
    else:
        msg = "the metadata block has no closing '---' line"
        raise YAMLError(msg)
    metadata = _HANDLER.load("".join(lines[1:index]))
    body = "".join(lines[index + 1 :])
    return (dict(metadata) if isinstance(metadata, dict) else {}), body


def resolve_layout(
    path: PurePosixPath,
    attributes: cabc.Mapping[str, typ.Any],
    page_layouts: cabc.Mapping[str, str],
) -> str:
    """Return the layout for a page at ``path`` relative to the pages root.

    Precedence: the ``layout`` attribute, then the most specific folder
    mapping in ``page_layouts``, then ``"default"``.
    """
    explicit = attributes.get("layout")
    if explicit:
        return str(explicit)
    folder = path.parent.parts
    best: str | None = None
    best_depth = -1
    for prefix, layout in page_layouts.items():
        parts = PurePosixPath(prefix).parts
        if folder[: len(parts)] == parts and len(parts) > best_depth:
            best, best_depth = layout, len(parts)
    return best or DEFAULT_LAYOUT


def root_prefix(output_path: PurePosixPath) -> str:
    """Return the relative prefix leading from ``output_path`` to the site root.

    Examples
    --------
    >>> root_prefix(PurePosixPath("index.md")), root_prefix(PurePosixPath("jp/a/b.md"))
    ('', '../../')
    """
    return "../" * len(output_path.parent.parts)


class PageParser:
    """Produce a :class:`~sitepress.models.PageRecord` from one document."""

    def __init__(self, config: SiteConfig, transforms: TransformPipeline) -> None:
        self.config = config
        self.transforms = transforms

    async def parse(
        self, document: SourceDocument, snapshot: ContextSnapshot
    ) -> PageRecord:
        """Parse ``document`` against the render-context ``snapshot``.

        Raises
        ------
        TransformError
            Only when a ``before`` transform fails and the configured
            ``transform_failures`` policy is ``"abort"``.
        """
        parse_error: ParseErrorInfo | None = None
        try:
            attributes, body = split_front_matter(document.text)
        except YAMLError as exc:
            logger.warning("Invalid front matter in %s: %s", document.identity, exc)
            attributes, body = {}, ""
            parse_error = ParseErrorInfo(
                METADATA_SYNTAX_ERROR, f"The front matter is not valid YAML.\n{exc}"
            )

        rule = self.config.transform_rule(document.path)
        if parse_error is None and rule is not None and rule.before:
            try:
                body = await self.transforms.apply(body, rule.before)
            except TransformError as exc:
                if self.config.transform_failures == "abort":
                    raise
                logger.warning("%s: %s", document.identity, exc)
                body = ""
                parse_error = ParseErrorInfo(TRANSFORM_ERROR, str(exc))

        layout = resolve_layout(document.path, attributes, self.config.page_layouts)
        output_path = document.output_path
        prefix = root_prefix(output_path)
        page = document.path.stem
        data = self.assemble_data(
            document,
            attributes,
            snapshot,
            page=page,
            layout=layout,
            prefix=prefix,
        )
        return PageRecord(
            source=document.identity,
            output_path=output_path,
            body=body,
            front_matter=attributes,
            data=data,
            page=page,
            layout=layout,
            root_prefix=prefix,
            locale=document.locale,
            parse_error=parse_error,
            synthetic=document.synthetic,
        )

    def assemble_data(
        self,
        document: SourceDocument,
        attributes: cabc.Mapping[str, typ.Any],
        snapshot: ContextSnapshot,
        *,
        page: str,
        layout: str,
        prefix: str,
    ) -> dict[str, typ.Any]:
        """Merge global, attached, and front-matter data, then apply constants.

        Later sources override earlier ones and nested mappings are merged.
        ``page``, ``layout``, ``root``, ``locale`` and the per-page helpers
        always win.
        """
        data = deep_merge(snapshot.global_data, document.data)
        data = deep_merge(data, attributes)
        data["page"] = page
        data["layout"] = layout
        data["root"] = prefix
        data["is_page"] = make_is_page(page)
        if document.locale is not None:
            translate = make_translate(snapshot.locale_data, document.locale)
            data["locale"] = document.locale
            data["translate"] = translate
            data["t"] = translate
        return data


__all__ = [
    "PageParser",
    "RuamelYAMLHandler",
    "resolve_layout",
    "root_prefix",
    "split_front_matter",
]
