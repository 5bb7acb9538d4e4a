from pathlib import Path

from inkpress.protocols import ContentRenderer
from inkpress.renderers import (
    HTMLRenderer,
    MarkdownRenderer,
    RendererRegistry,
    _generate_heading_id,
    escape_unterminated_fences,
)

SWIFT_POST = """# Optionals

Use `if let` to unwrap.

```swift
let name: String? = nil
if let name = name { print(name) }
```

## Reduce

- one
- two

![Cover](/img/cover.png)
"""


def test_rendering_is_deterministic():
    renderer = MarkdownRenderer()
    first, _ = renderer.render(SWIFT_POST)
    second, _ = renderer.render(SWIFT_POST)
    assert first == second


def test_markdown_structures():
    html, toc = MarkdownRenderer().render(SWIFT_POST)
    assert '<h1 id="optionals">Optionals</h1>' in html
    assert "<code>if let</code>" in html
    assert "<li>one</li>" in html
    assert '<img src="/img/cover.png" alt="Cover"' in html
    assert [(h.id, h.level) for h in toc] == [("optionals", 1), ("reduce", 2)]


def test_fenced_code_is_highlighted():
    html, _ = MarkdownRenderer().render(SWIFT_POST)
    assert 'class="highlight"' in html
    assert "nil" in html


def test_unknown_language_is_escaped_verbatim():
    source = "```nosuchlanguage\nfunc map<T>(_ f: (Wrapped) -> T) -> T?\n```\n"
    html, _ = MarkdownRenderer().render(source)
    assert '<pre><code class="language-nosuchlanguage">' in html
    assert "func map&lt;T&gt;(_ f: (Wrapped) -&gt; T) -&gt; T?" in html


def test_unterminated_fence_is_literal_text():
    source = "Intro\n\n```swift\nlet a = 1\n\n# After\n"
    html, toc = MarkdownRenderer().render(source)
    assert "<pre" not in html
    assert "```swift" in html
    assert '<h1 id="after">After</h1>' in html
    assert [h.text for h in toc] == ["After"]


def test_escape_unterminated_fences_leaves_closed_fences():
    closed = "```\ncode\n```\n\n~~~~\nmore\n~~~~\n"
    assert escape_unterminated_fences(closed) == closed
    escaped = escape_unterminated_fences("  ~~~python\nx = 1\n")
    assert escaped == "  \\~\\~\\~python\nx = 1\n"


def test_heading_ids_are_unique_and_plain():
    html, toc = MarkdownRenderer().render("# Intro\n\n## Intro\n\n## Using `reduce`\n")
    assert [h.id for h in toc] == ["intro", "intro-1", "using-reduce"]
    assert toc[2].text == "Using reduce"
    assert '<h2 id="intro-1">Intro</h2>' in html


def test_generate_heading_id():
    assert _generate_heading_id("Hello World") == "hello-world"
    assert _generate_heading_id("  Spaces  Around  ") == "spaces-around"
    assert _generate_heading_id("Special!@#$%Chars") == "specialchars"
    assert _generate_heading_id("<code>SUBQUERY</code> predicates") == "subquery-predicates"


def test_html_renderer_passes_through():
    html, toc = HTMLRenderer().render("<h1>Raw</h1>")
    assert html == "<h1>Raw</h1>"
    assert toc == []


def test_registry_selects_by_suffix():
    registry = RendererRegistry()
    assert isinstance(registry.get_renderer(Path("a.md")), MarkdownRenderer)
    assert isinstance(registry.get_renderer(Path("a.markdown")), MarkdownRenderer)
    assert isinstance(registry.get_renderer(Path("404.html")), HTMLRenderer)
    assert registry.get_renderer(Path("style.css")) is None
    assert isinstance(MarkdownRenderer(), ContentRenderer)
