"""Body renderers for Inkpress.

Each renderer turns the body of one kind of content unit into HTML.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML bodies.
- RendererRegistry: Picks the renderer for a source file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .protocols import ContentRenderer
from .utils import is_html, is_markdown

FENCE_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")
TAG_RE = re.compile(r"<[^>]+>")

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass(frozen=True)
class Heading:
    """A heading extracted from a rendered body, used for the table of contents.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = TAG_RE.sub("", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _find_unterminated_fence(lines: list[str]) -> int | None:
    """Return the index of the opening line of a fence that is never closed."""
    open_index: int | None = None
    fence = ""
    for index, line in enumerate(lines):
        match = FENCE_RE.match(line.rstrip("\r\n"))
        if not match:
            continue
        marker, info = match.group(2), match.group(3)
        if open_index is None:
            # Backtick fences cannot carry backticks in their info string.
            if marker[0] == "`" and "`" in info:
                continue
            open_index, fence = index, marker
        elif marker[0] == fence[0] and len(marker) >= len(fence) and not info.strip():
            open_index = None
    return open_index


def escape_unterminated_fences(text: str) -> str:
    """Escape the opening line of any code fence that is never closed.

    An unclosed fence would otherwise turn the rest of the document into a
    code block; escaping its markers renders the line as literal text.

    Args:
        text: Markdown source.

    Returns:
        Markdown source in which every remaining fence is closed.
    """
    lines = text.splitlines(keepends=True)
    index = _find_unterminated_fence(lines)
    while index is not None:
        match = FENCE_RE.match(lines[index].rstrip("\r\n"))
        indent, marker = match.group(1), match.group(2)
        escaped = "".join(f"\\{char}" for char in marker)
        lines[index] = indent + escaped + lines[index][len(indent) + len(marker) :]
        index = _find_unterminated_fence(lines)
    return "".join(lines)


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer with heading anchors and Pygments code highlighting.

    Attributes:
        headings: Headings seen during rendering, in document order.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text) or "section"
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        plain = " ".join(TAG_RE.sub("", text).split())
        self.headings.append(Heading(id=heading_id, text=plain, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block, highlighted when its language is known.

        Args:
            code: The code content.
            info: Fence info string; its first word is the language.

        Returns:
            HTML string with the code block.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripnl=False)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown bodies to HTML."""

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        A fresh mistune instance is used per call so output depends only on
        the input text.

        Args:
            content: Markdown source content.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        html = markdown(escape_unterminated_fences(content))
        return html, renderer.headings


class HTMLRenderer:
    """Passes HTML bodies through unchanged."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        return content, []


class RendererRegistry:
    """Registry for body renderers, checked in registration order."""

    def __init__(self):
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        """Register a new renderer.

        Args:
            renderer: A ContentRenderer implementation.
        """
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Get the renderer for a file.

        Args:
            path: Path to the source file.

        Returns:
            The first renderer that can handle the file, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None

    def can_render(self, path: Path) -> bool:
        return self.get_renderer(path) is not None


default_renderer_registry = RendererRegistry()
