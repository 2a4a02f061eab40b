"""Markup conversion for Quire.

Converts Markdown document bodies to HTML fragments. The converter is a
pure function of its input, so rendering the same document twice gives
byte-identical output.

Key classes:
- MarkdownConverter: mistune-based implementation of MarkupConverter.
"""

from __future__ import annotations

import re

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import escape_html

DEFAULT_PLUGINS = ("strikethrough", "footnotes", "table", "url")


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and Pygments code highlighting."""

    def __init__(self, css_class: str = "highlight"):
        super().__init__(escape=False)
        self.css_class = css_class
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = generate_heading_id(text) or "section"
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass=self.css_class)
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownConverter:
    """Renders Markdown to HTML with mistune.

    Fenced code blocks with a known language are highlighted by Pygments
    under the ``highlight`` CSS class; headings get stable ``id`` anchors.

    Attributes:
        plugins: mistune plugin names to enable.
    """

    def __init__(self, plugins: tuple[str, ...] = DEFAULT_PLUGINS):
        self.plugins = plugins

    def convert(self, text: str) -> str:
        """Convert Markdown text to an HTML fragment.

        Args:
            text: Markdown source.

        Returns:
            Rendered HTML.
        """
        # A fresh renderer per call keeps heading-id counters per document.
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=list(self.plugins)
        )
        return markdown(text)


def pygments_css(css_class: str = "highlight") -> str:
    """Return Pygments CSS rules for highlighted code blocks."""
    return HtmlFormatter().get_style_defs(f".{css_class}")
