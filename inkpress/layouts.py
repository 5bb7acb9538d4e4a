"""Layout composition for Inkpress.

Layouts are Jinja2 templates in ``<source_dir>/_layouts``. A rendered body is
substituted into the layout's ``{{ content }}`` slot; a layout may name a
parent layout in its own front matter, and composition continues up the
chain. Partials in ``<source_dir>/_includes`` are available to
``{% include %}``.

Key class:
- TemplateComposer: Expands body variables and composes pages into layouts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PrefixLoader,
    TemplateError,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup
from pygments.formatters import HtmlFormatter

from .content import RenderedPage
from .errors import ContentError, LayoutError, LayoutNotFoundError, RenderError
from .frontmatter import load_metadata, split_frontmatter
from .html_utils import escape_html, join_root_url
from .renderers import Heading

logger = logging.getLogger(__name__)

LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"
LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", "")

# Explicit opt-out: `layout: none` publishes the body without a layout.
NO_LAYOUT = "none"


class _FrontmatterLoader(FileSystemLoader):
    """Filesystem loader that hides a template's front matter from Jinja.

    The front matter lines are replaced by blank lines so Jinja reports line
    numbers that match the file on disk.
    """

    def get_source(self, environment, template):
        source, filename, uptodate = super().get_source(environment, template)
        split = split_frontmatter(source, Path(filename))
        if split.has_frontmatter:
            header = split.opening + split.block + split.closing
            source = "\n" * header.count("\n") + split.body
        return source, filename, uptodate


def render_toc(toc: list[Heading]) -> Markup:
    """Render headings as nested ``<ul><li><a href="#id">text</a></li></ul>`` HTML.

    Args:
        toc: Headings in document order.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    if not toc:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in toc:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


def date_format(value: datetime | None, fmt: str = "%B %d, %Y") -> str:
    """Jinja filter formatting a page date; undated pages give an empty string."""
    if value is None:
        return ""
    return value.strftime(fmt)


def pygments_css() -> Markup:
    """Return Pygments CSS styles for the ``.highlight`` class."""
    return Markup(HtmlFormatter().get_style_defs(".highlight"))


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"
    return f"{error_type}: {error_msg}"


class TemplateComposer:
    """Composes rendered pages into their layouts.

    Attributes:
        source_dir: Directory containing ``_layouts`` and ``_includes``.
        site: Site context exposed to layouts and bodies as ``site``.
        default_layout: Layout used by units without a ``layout`` key.
        env: Jinja2 environment for layouts and includes.
        body_env: Jinja2 environment for expanding variables in bodies.
    """

    def __init__(
        self,
        source_dir: Path,
        site: dict[str, Any],
        default_layout: str | None = "default",
    ):
        self.source_dir = source_dir
        self.layouts_dir = source_dir / LAYOUTS_DIR
        self.site = site
        self.default_layout = default_layout or None
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    PrefixLoader({LAYOUTS_DIR: _FrontmatterLoader(self.layouts_dir)}),
                    _FrontmatterLoader(source_dir / INCLUDES_DIR),
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
        )
        self.body_env = Environment(autoescape=False)
        for env in (self.env, self.body_env):
            env.globals["site"] = self.site
            env.globals["url_for"] = self.url_for
            env.globals["pygments_css"] = pygments_css
            env.globals["render_toc"] = render_toc
            env.filters["date_format"] = date_format
        self._parents: dict[str, str | None] = {}

    def url_for(self, path: str) -> str:
        """Generate a URL for a path, prefixed with the site url when configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        base = str(self.site.get("url") or "")
        return join_root_url(base, path if path.startswith("/") else f"/{path}")

    def find_layout(self, name: str) -> str | None:
        """Return the Jinja template name for a layout, or None if it is absent."""
        for suffix in LAYOUT_SUFFIXES:
            candidate = self.layouts_dir / f"{name}{suffix}"
            if candidate.is_file():
                return f"{LAYOUTS_DIR}/{name}{suffix}"
        return None

    def _layout_parent(self, name: str, template_name: str) -> str | None:
        if name not in self._parents:
            path = self.source_dir / template_name
            split = split_frontmatter(path.read_text(encoding="utf-8"), path)
            metadata = load_metadata(split.block, path) if split.has_frontmatter else {}
            self._parents[name] = metadata.get("layout")
        return self._parents[name]

    def page_context(self, page: RenderedPage) -> dict[str, Any]:
        """Build the ``page`` variable for a rendered page."""
        unit = page.unit
        return {
            **unit.metadata,
            "title": unit.title,
            "url": page.url,
            "date": unit.date,
            "kind": unit.kind,
            "slug": unit.slug,
            "tags": unit.tags,
            "description": unit.description,
            "feature_img": unit.feature_img,
            "draft": unit.draft,
            "source": unit.rel_path.as_posix(),
            "toc": page.toc,
        }

    def expand_variables(self, body: str, page: dict[str, Any], source_path: Path) -> str:
        """Expand ``{{ ... }}`` expressions in a body before it is rendered.

        A body that is not a valid template is returned unchanged; an
        expression that fails while evaluating fails the unit.

        Args:
            body: Raw body text.
            page: Page context for the unit.
            source_path: Unit source, for log messages.

        Returns:
            The expanded body.

        Raises:
            RenderError: If an expression raises, e.g. a division by zero.
        """
        if "{{" not in body and "{%" not in body:
            return body
        try:
            return self.body_env.from_string(body).render(page=page)
        except TemplateError as exc:
            logger.warning("Keeping %s literally; template expansion failed: %s", source_path, exc)
            return body
        except Exception as exc:
            raise RenderError(
                source_path, f"Body expression failed: {_format_error_message(exc)}"
            ) from exc

    def compose(self, page: RenderedPage) -> str:
        """Substitute a page's body into its layout chain.

        Args:
            page: Page with rendered body content.

        Returns:
            Final HTML.

        Raises:
            LayoutNotFoundError: If the named or default layout does not exist.
            LayoutError: If the layout chain loops or a layout is malformed.
            RenderError: If a layout template fails to render.
        """
        unit = page.unit
        name = unit.layout or self.default_layout
        if name == NO_LAYOUT:
            return page.content
        if not name:
            raise LayoutNotFoundError(
                unit.source_path,
                None,
                "No layout declared and no default_layout configured",
            )

        page_ctx = self.page_context(page)
        content = Markup(page.content)
        chain: list[str] = []
        while name and name != NO_LAYOUT:
            if name in chain:
                loop = " -> ".join(chain + [name])
                raise LayoutError(unit.source_path, f"Layout chain loops: {loop}")
            chain.append(name)
            template_name = self.find_layout(name)
            if template_name is None:
                raise LayoutNotFoundError(unit.source_path, name)
            try:
                parent = self._layout_parent(name, template_name)
                template = self.env.get_template(template_name)
                content = Markup(template.render(content=content, page=page_ctx))
            except ContentError as exc:
                raise LayoutError(unit.source_path, f"Layout {name!r}: {exc.message}") from exc
            except TemplateSyntaxError as exc:
                raise RenderError(
                    unit.source_path,
                    f"Template syntax error in {exc.name or template_name} "
                    f"on line {exc.lineno}: {exc.message}",
                ) from exc
            except Exception as exc:
                raise RenderError(unit.source_path, _format_error_message(exc)) from exc
            name = parent
        return str(content)
