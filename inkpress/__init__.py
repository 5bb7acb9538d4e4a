"""Inkpress static publishing pipeline.

This package turns a directory of blog pages and posts (YAML front matter
followed by a Markdown body) into a static HTML site using Jinja2 layouts.

The pipeline is strictly linear and runs once per content unit:
loader -> front matter parser -> Markdown renderer -> layout composer -> assembler.
A bad unit is reported and skipped; it never aborts the rest of the build.

The main entry point is the CLI module, which provides commands for scaffolding
new projects, building sites, writing posts and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
