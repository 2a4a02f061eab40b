"""Quire static site generator.

This package turns a tree of Markdown documents with front matter into a
mirrored tree of HTML pages, using named Jinja2 templates.

The pipeline has three stages, each in its own module:
- Content loading (content, frontmatter): discover documents and parse metadata.
- Rendering (markup, templates, renderer): convert markup and bind it into a template.
- Emission (emitter, assets, feeds): write pages, static files and feeds.

The build module drives the pipeline and the cli module exposes it.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
