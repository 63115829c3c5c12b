"""End-to-end tests for build passes over throwaway sites.

Each test writes a small site with the ``write_site`` fixture, builds it in
memory, and inspects the finished pages with BeautifulSoup where the markup
matters.
"""

from __future__ import annotations

import asyncio
import typing as typ
from pathlib import Path, PurePosixPath

import pytest
from bs4 import BeautifulSoup

from sitepress._constants import ERROR_MARKER
from sitepress._tasks import gather_or_cancel
from sitepress.config import load_site_config
from sitepress.engines import JinjaRenderer
from sitepress.errors import ConfigurationError, TransformError
from sitepress.models import SourceDocument
from sitepress.pipeline import PassState, Phase, Pipeline
from sitepress.sinks import MemorySink
from sitepress.sources import make_document

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sitepress.context import ContextSnapshot
    from sitepress.models import PageRecord

    WriteSite = cabc.Callable[..., Path]
    BuildSite = cabc.Callable[..., typ.Any]

BLOG_PLUGIN = """
def to_post(path, contents):
    return {"name": path.stem + ".md", "data": {"title": contents.strip()}}

COLLECTIONS = {
    "blog": {"input": "posts/*.md", "output": "blog", "transform": to_post},
}
"""


def _text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text()


def test_page_without_front_matter_uses_default_layout(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/index.md": "Hello from the index"})
    sink, summary = build_site(root)

    html = sink["index.html"]
    assert "Hello from the index" in html
    assert "<title>index</title>" in html
    assert summary.page_count == 1
    assert summary.error_count == 0
    assert summary.message == "1 page built."


def test_every_page_sees_the_full_page_list(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site(
        {
            "layouts/default.html": "<p class='count'>{{ pages|length }}</p>{{ body }}",
            "pages/index.md": "Home",
            "pages/about.md": "About",
            "pages/docs/guide.md": "Guide",
            "helpers/blog.py": BLOG_PLUGIN,
            "collections/blog/template.html": "<h1>{{ title }}</h1>",
            "posts/hello.md": "Hi",
        }
    )
    sink, summary = build_site(root)

    assert sink.paths() == ["about.html", "blog/hello.html", "docs/guide.html", "index.html"]
    assert summary.page_count == 4
    for path in sink.paths():
        soup = BeautifulSoup(sink[path], "html.parser")
        assert soup.select_one("p.count").get_text() == "4"
    assert "<h1>Hi</h1>" in sink["blog/hello.html"]


def test_pages_list_exposes_records(write_site: WriteSite, build_site: BuildSite) -> None:
    root = write_site(
        {
            "layouts/default.html": "{{ body }}",
            "pages/index.md": (
                "{% for p in pages|sort(attribute='page') %}{{ p.page }};{% endfor %}"
            ),
            "pages/about.md": "---\ntitle: About us\n---\nAbout",
        }
    )
    sink, _summary = build_site(root)
    assert sink["index.html"] == "about;index;"


def test_invalid_front_matter_fails_only_its_page(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site(
        {
            **default_layout,
            "pages/index.md": "Fine",
            "pages/broken.md": "---\ntitle: [oops\n---\nNever shown",
        }
    )
    sink, summary = build_site(root)

    assert "Fine" in sink["index.html"]
    assert ERROR_MARKER not in sink["index.html"]
    broken = sink["broken.html"]
    assert ERROR_MARKER in broken
    assert "<title>broken</title>" in broken
    assert "Never shown" not in broken
    assert summary.error_count == 1
    assert summary.message == "2 pages built, 1 had errors."


def test_missing_named_layout_renders_inside_default(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/about.md": "---\nlayout: missing\n---\nBody"})
    sink, summary = build_site(root)

    html = sink["about.html"]
    assert html.startswith("<html>")
    assert ERROR_MARKER in html
    assert 'No layout named "missing" exists.' in _text(html)
    assert summary.error_count == 1


def test_missing_default_layout_without_any_layouts(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site({"pages/index.md": "Body"})
    sink, summary = build_site(root)

    html = sink["index.html"]
    assert html.startswith("<!DOCTYPE html>")
    assert 'You must have a layout named "default".' in _text(html)
    assert summary.error_count == 1


def test_folder_layouts_and_fallback_layout(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site(
        {
            "layouts/post.html": "<article>{{ body }}</article>",
            "pages/blog/first.md": "Post",
            "pages/index.md": "Home",
        }
    )
    sink, summary = build_site(root, page_layouts={"blog": "post"})

    assert sink["blog/first.html"] == "<article>Post</article>"
    home = sink["index.html"]
    assert home.startswith("<article>")
    assert 'You must have a layout named "default".' in _text(home)
    assert summary.error_count == 1


def test_template_errors_become_error_pages(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site(
        {
            **default_layout,
            "pages/index.md": "{{ 1 / 0 }}",
            "pages/syntax.md": "{% for %}",
            "pages/ok.md": "Fine",
        }
    )
    sink, summary = build_site(root)

    assert "ZeroDivisionError" in _text(sink["index.html"])
    assert ERROR_MARKER in sink["syntax.html"]
    assert summary.error_count == 2
    assert summary.page_count == 3


def test_renderer_exceptions_are_isolated(write_site: WriteSite) -> None:
    class ExplodingRenderer(JinjaRenderer):
        def render(
            self,
            body: str,
            data: cabc.Mapping[str, typ.Any],
            record: PageRecord,
            snapshot: ContextSnapshot,
        ) -> str:
            if record.page == "boom":
                msg = "engine exploded"
                raise RuntimeError(msg)
            return super().render(body, data, record, snapshot)

    root = write_site(
        {"layouts/default.html": "{{ body }}", "pages/boom.md": "x", "pages/ok.md": "y"}
    )
    pipeline = Pipeline(load_site_config(root), renderer=ExplodingRenderer())
    sink = MemorySink()
    summary = asyncio.run(pipeline.build(sink))

    assert "engine exploded" in _text(sink["boom.html"])
    assert sink["ok.html"] == "y"
    assert summary.error_count == 1


def test_global_data_helpers_and_fragments(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site(
        {
            "layouts/default.html": (
                "{% include 'nav/top' %}<main>{{ body }}</main>"
            ),
            "partials/nav/top.html": "<nav>{{ site.name }} / {{ page }}</nav>",
            "data/site.yml": "name: Example\n",
            "helpers/tools.py": 'HELPERS = {"shout": lambda s: s.upper() + "!"}\n',
            "pages/index.md": "{{ shout('hi') }} {{ '**bold**' | markdown }}",
        }
    )
    sink, _summary = build_site(root)

    soup = BeautifulSoup(sink["index.html"], "html.parser")
    assert soup.select_one("nav").get_text() == "Example / index"
    assert "HI!" in soup.select_one("main").get_text()
    assert soup.select_one("main strong").get_text() == "bold"


def test_locales_fan_out_with_translations(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site(
        {
            "layouts/default.html": "<p>{{ locale }}|{{ root }}|{{ body }}</p>",
            "locales/en/strings.yml": "greeting: Hello\n",
            "locales/jp/strings.yml": "greeting: Konnichiwa\n",
            "pages/about.md": "{{ t('strings.greeting') }}",
            "pages/jp/only.md": "{{ t('strings.greeting') }}",
        }
    )
    sink, summary = build_site(root, default_locale="en")

    assert sink.paths() == ["about.html", "jp/about.html", "jp/only.html"]
    assert sink["about.html"] == "<p>en||Hello</p>"
    assert sink["jp/about.html"] == "<p>jp|../|Konnichiwa</p>"
    assert sink["jp/only.html"] == "<p>jp|../|Konnichiwa</p>"
    assert summary.page_count == 3


def test_transforms_before_and_after(write_site: WriteSite, build_site: BuildSite) -> None:
    root = write_site(
        {
            "layouts/default.html": "<body>{{ body }}</body>",
            "pages/index.md": "# Title",
            "pages/raw.html": "<i>{{ page }}</i>",
        }
    )
    sink, _summary = build_site(
        root,
        transforms={
            ".md": {"before": ["markdown"], "after": ["builtins:str.upper"]},
        },
    )
    assert sink["index.html"] == "<BODY><H1>TITLE</H1></BODY>"
    assert sink["raw.html"] == "<body><i>raw</i></body>"


def test_failing_after_transform_is_isolated_by_default(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/a.md": "A", "pages/b.html": "B"})
    sink, summary = build_site(root, transforms={".md": {"after": ["builtins:int"]}})

    assert ERROR_MARKER in sink["a.html"]
    assert "builtins:int" in _text(sink["a.html"])
    assert ERROR_MARKER not in sink["b.html"]
    assert summary.error_count == 1


def test_failing_after_transform_aborts_when_configured(
    write_site: WriteSite, build_site: BuildSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/a.md": "A"})
    with pytest.raises(TransformError):
        build_site(
            root,
            transforms={".md": {"after": ["builtins:int"]}},
            transform_failures="abort",
        )


def test_output_extension_and_duplicate_outputs(
    write_site: WriteSite, build_site: BuildSite
) -> None:
    root = write_site(
        {
            "layouts/default.html": "{{ body }}",
            "pages/about.html": "from html",
            "pages/about.md": "from markdown",
            "pages/notes/todo.txt": "note",
        }
    )
    sink, summary = build_site(root, page_extension=".htm")

    assert sink.paths() == ["about.htm", "notes/todo.htm"]
    assert sink["about.htm"] == "from html"
    assert summary.page_count == 2


def test_phase_signals_and_unsubscribe(
    write_site: WriteSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/index.md": "Home"})
    pipeline = Pipeline(load_site_config(root))
    phases: list[Phase] = []
    unsubscribe = pipeline.subscribe(lambda phase, _payload: phases.append(phase))

    async def scenario() -> None:
        await pipeline.build(MemorySink())
        unsubscribe()
        await pipeline.build(MemorySink())

    asyncio.run(scenario())
    assert phases == [Phase.READY, Phase.PARSING, Phase.BUILDING, Phase.BUILT]
    assert pipeline.state is PassState.DONE


def test_error_signal_on_aborted_pass(
    write_site: WriteSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/index.md": "Home"})
    config = load_site_config(
        root,
        overrides={
            "transforms": {".md": {"after": ["builtins:int"]}},
            "transform_failures": "abort",
        },
    )
    pipeline = Pipeline(config)
    signals: list[tuple[Phase, object]] = []
    pipeline.subscribe(lambda phase, payload: signals.append((phase, payload)))

    with pytest.raises(TransformError):
        asyncio.run(pipeline.build(MemorySink()))
    phase, payload = signals[-1]
    assert phase is Phase.ERROR
    assert isinstance(payload, TransformError)


def test_unknown_engine_is_a_configuration_error(
    write_site: WriteSite,
) -> None:
    root = write_site({"pages/index.md": "x"})
    with pytest.raises(ConfigurationError, match="Could not load engine"):
        Pipeline(load_site_config(root, overrides={"engine": "handlebars"}))


def test_explicit_sources_are_accepted(
    write_site: WriteSite, default_layout: dict[str, str]
) -> None:
    root = write_site(default_layout)
    pipeline = Pipeline(load_site_config(root))
    document = SourceDocument(
        identity=Path("virtual.md"),
        path=PurePosixPath("virtual.md"),
        raw=b"---\ntitle: Virtual\n---\n{{ title }}",
        data={"extra": "attached"},
    )

    async def scenario() -> MemorySink:
        sink = MemorySink()
        await pipeline.refresh()
        await pipeline.run([document], sink)
        return sink

    sink = asyncio.run(scenario())
    assert "<body>Virtual</body>" in sink["virtual.html"]


def test_refresh_during_a_pass_does_not_mix_generations(
    write_site: WriteSite,
) -> None:
    root = write_site(
        {
            "layouts/default.html": "<p>L1</p>{{ body }}",
            "data/site.yml": "name: D1\n",
            "pages/a.md": "{{ site.name }}",
            "pages/b.md": "{{ site.name }}",
        }
    )
    pipeline = Pipeline(load_site_config(root))
    pages = root / "pages"

    async def sources() -> cabc.AsyncIterator[SourceDocument]:
        yield make_document(pages, pages / "a.md")
        (root / "layouts" / "default.html").write_text(
            "<p>L2</p>{{ body }}", encoding="utf-8"
        )
        (root / "data" / "site.yml").write_text("name: D2\n", encoding="utf-8")
        await pipeline.refresh()
        yield make_document(pages, pages / "b.md")

    async def scenario() -> MemorySink:
        await pipeline.refresh()
        sink = MemorySink()
        await pipeline.build(sink, sources())
        return sink

    sink = asyncio.run(scenario())
    assert sink["a.html"] == "<p>L1</p>D1"
    assert sink["b.html"] == "<p>L1</p>D1"
    assert pipeline.context.generation == 2


def test_failing_source_iterator_stops_the_pass(
    write_site: WriteSite, default_layout: dict[str, str]
) -> None:
    root = write_site({**default_layout, "pages/index.md": "Home"})
    pipeline = Pipeline(load_site_config(root))
    pages = root / "pages"
    phases: list[Phase] = []
    pipeline.subscribe(lambda phase, _payload: phases.append(phase))

    async def sources() -> cabc.AsyncIterator[SourceDocument]:
        yield make_document(pages, pages / "index.md")
        msg = "listing failed"
        raise OSError(msg)

    sink = MemorySink()
    with pytest.raises(OSError, match="listing failed"):
        asyncio.run(pipeline.build(sink, sources()))
    assert len(sink) == 0
    assert phases[-1] is Phase.ERROR
    assert pipeline.state is PassState.DONE


def test_gather_or_cancel_drains_the_remaining_tasks() -> None:
    async def fail() -> None:
        await asyncio.sleep(0)
        msg = "boom"
        raise ValueError(msg)

    async def scenario() -> asyncio.Future[None]:
        slow = asyncio.ensure_future(asyncio.sleep(10))
        failing = asyncio.ensure_future(fail())
        with pytest.raises(ValueError, match="boom"):
            await gather_or_cancel([slow, failing])
        return slow

    slow = asyncio.run(scenario())
    assert slow.cancelled()
