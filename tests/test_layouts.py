from datetime import datetime
from pathlib import Path
from types import MappingProxyType

import pytest

from inkpress.content import ContentUnit, RenderedPage
from inkpress.errors import LayoutError, LayoutNotFoundError, RenderError
from inkpress.layouts import TemplateComposer, date_format, render_toc
from inkpress.renderers import Heading


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_page(source_dir: Path, content: str = "<p>Hello</p>\n", url="/about/", **metadata):
    unit = ContentUnit(
        source_path=source_dir / "about.md",
        rel_path=Path("about.md"),
        kind="page",
        metadata=MappingProxyType(metadata),
        body="Hello\n",
    )
    return RenderedPage(unit=unit, url=url, path=Path("about/index.html"), content=content)


@pytest.fixture
def site_dir(tmp_path):
    site = tmp_path / "site"
    write(site / "_layouts" / "default.html", "<html>{% include 'head.html' %}<body>{{ content }}</body></html>")
    write(site / "_layouts" / "page.html", "<main>{{content}}</main>")
    write(site / "_includes" / "head.html", "<title>{{ page.title }} | {{ site.title }}</title>")
    return site


def test_page_layout_wraps_content(site_dir):
    composer = TemplateComposer(site_dir, {"title": "Blog"})
    page = make_page(site_dir, layout="page", title="About", permalink="/about/")
    assert composer.compose(page) == "<main><p>Hello</p>\n</main>"


def test_missing_layout_uses_default(site_dir):
    composer = TemplateComposer(site_dir, {"title": "Blog"})
    html = composer.compose(make_page(site_dir, title="About"))
    assert html == "<html><title>About | Blog</title><body><p>Hello</p>\n</body></html>"


def test_titles_are_escaped_but_content_is_not(site_dir):
    composer = TemplateComposer(site_dir, {"title": "Tom & Jerry"})
    html = composer.compose(make_page(site_dir, content="<em>x</em>", title="<b>About</b>"))
    assert "&lt;b&gt;About&lt;/b&gt; | Tom &amp; Jerry" in html
    assert "<em>x</em>" in html


def test_named_layout_not_found(site_dir):
    composer = TemplateComposer(site_dir, {})
    with pytest.raises(LayoutNotFoundError) as excinfo:
        composer.compose(make_page(site_dir, layout="gallery"))
    assert excinfo.value.layout == "gallery"


def test_default_layout_absent_or_disabled(tmp_path):
    site = tmp_path / "site"
    (site / "_layouts").mkdir(parents=True)
    with pytest.raises(LayoutNotFoundError):
        TemplateComposer(site, {}).compose(make_page(site))
    with pytest.raises(LayoutNotFoundError) as excinfo:
        TemplateComposer(site, {}, default_layout="").compose(make_page(site))
    assert "no default_layout" in excinfo.value.message


def test_layout_none_publishes_body(site_dir):
    composer = TemplateComposer(site_dir, {})
    assert composer.compose(make_page(site_dir, layout="none")) == "<p>Hello</p>\n"


def test_layout_chain(site_dir):
    write(site_dir / "_layouts" / "post.html", "---\nlayout: default\n---\n<article>{{ content }}</article>")
    composer = TemplateComposer(site_dir, {"title": "Blog"})
    html = composer.compose(make_page(site_dir, layout="post", title="Reduce"))
    assert html == (
        "<html><title>Reduce | Blog</title><body>"
        "\n\n\n<article><p>Hello</p>\n</article></body></html>"
    )


def test_layout_chain_cycle(site_dir):
    write(site_dir / "_layouts" / "a.html", "---\nlayout: b\n---\n{{ content }}")
    write(site_dir / "_layouts" / "b.html", "---\nlayout: a\n---\n{{ content }}")
    composer = TemplateComposer(site_dir, {})
    with pytest.raises(LayoutError, match="a -> b -> a"):
        composer.compose(make_page(site_dir, layout="a"))


def test_layout_suffix_lookup(site_dir):
    write(site_dir / "_layouts" / "bare.jinja", "[{{ content }}]")
    composer = TemplateComposer(site_dir, {})
    assert composer.find_layout("bare") == "_layouts/bare.jinja"
    assert composer.find_layout("page") == "_layouts/page.html"
    assert composer.find_layout("missing") is None
    assert composer.compose(make_page(site_dir, content="x", layout="bare")) == "[x]"


def test_template_errors_become_render_errors(site_dir):
    write(site_dir / "_layouts" / "broken.html", "<p>\n{% if %}\n</p>")
    write(site_dir / "_layouts" / "failing.html", "{{ page.title.missing.deeper }}")
    composer = TemplateComposer(site_dir, {})
    with pytest.raises(RenderError, match="line 2"):
        composer.compose(make_page(site_dir, layout="broken"))
    with pytest.raises(RenderError, match="Undefined variable"):
        composer.compose(make_page(site_dir, layout="failing", title="x"))


def test_expand_variables(site_dir):
    composer = TemplateComposer(site_dir, {"url": "https://blog.example.com"})
    page = make_page(site_dir, title="About")
    body = "![cover]({{ site.url }}/img/cover.png) by {{ page.title }}"
    context = composer.page_context(page)
    assert (
        composer.expand_variables(body, context, page.unit.source_path)
        == "![cover](https://blog.example.com/img/cover.png) by About"
    )
    assert composer.expand_variables("plain", context, page.unit.source_path) == "plain"


def test_expand_variables_keeps_invalid_body(site_dir, caplog):
    composer = TemplateComposer(site_dir, {})
    page = make_page(site_dir)
    body = "Use {{ in Jinja to print"
    with caplog.at_level("WARNING", logger="inkpress.layouts"):
        result = composer.expand_variables(body, composer.page_context(page), page.unit.source_path)
    assert result == body
    assert "Keeping" in caplog.text


def test_helpers(site_dir):
    composer = TemplateComposer(site_dir, {"url": "https://blog.example.com/"})
    assert composer.url_for("/css/main.css") == "https://blog.example.com/css/main.css"
    assert composer.url_for("img/a.png") == "https://blog.example.com/img/a.png"
    assert composer.url_for("https://cdn.example.com/x.js") == "https://cdn.example.com/x.js"
    assert TemplateComposer(site_dir, {}).url_for("about/") == "/about/"

    assert date_format(datetime(2016, 3, 2)) == "March 02, 2016"
    assert date_format(None) == ""

    toc = [Heading("intro", "Intro", 2), Heading("detail", "Detail", 3), Heading("end", "End", 2)]
    assert render_toc(toc) == (
        '<ul><li><a href="#intro">Intro</a><ul><li><a href="#detail">Detail</a>'
        '</li></ul></li><li><a href="#end">End</a></li></ul>'
    )
    assert render_toc([]) == ""
