"""Page rendering for Quire.

Binds a Document into a Template: the body is converted to HTML by a
MarkupConverter and inserted at the ``body`` slot, and the document's
metadata fields are exposed alongside it. Rendering has no side effects.

Key classes:
- RenderedPage: Output path and final HTML bytes for one document.
- Renderer: Turns a Document and a Template into a RenderedPage.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from markupsafe import Markup

from .collections import PageCollection
from .content import Document
from .errors import MissingTemplateSlot, RenderError
from .markup import MarkdownConverter
from .protocols import MarkupConverter
from .templates import Template, TemplateEngine

IMAGE_SRC_RE = re.compile(r'<img\s+[^>]*src="([^"]+)"', re.IGNORECASE)

DEFAULT_PAGE_TEMPLATE = "page"
DEFAULT_SECTION_TEMPLATE = "section"


@dataclass(frozen=True)
class RenderedPage:
    """Rendered output for one document.

    Attributes:
        relative_path: Output path relative to the output root.
        html: Final HTML, UTF-8 encoded.
        source: Path of the document it was rendered from.
    """

    relative_path: PurePosixPath
    html: bytes
    source: Path | None = None


def rewrite_image_path(src: str, folder: str) -> str:
    """Make a relative image source absolute from the document's folder.

    Co-located images are copied next to their document's source, while
    the page itself is written one directory deeper; an absolute path
    keeps the link valid.

    Args:
        src: Original image source.
        folder: Folder of the document relative to the content root.

    Returns:
        Rewritten image source.
    """
    if src.startswith(("http://", "https://", "//", "/", "data:", "#")) or "{{" in src:
        return src
    prefix = PurePosixPath("/", folder) if folder else PurePosixPath("/")
    return (prefix / src).as_posix()


class Renderer:
    """Renders documents through templates.

    Attributes:
        engine: Template engine used to select templates.
        converter: Markup converter for document bodies.
        pages: Published pages, exposed to templates for listings.
    """

    def __init__(
        self,
        engine: TemplateEngine,
        converter: MarkupConverter | None = None,
        pages: PageCollection | None = None,
    ):
        """Initialize the renderer.

        Args:
            engine: Template engine.
            converter: Optional custom markup converter.
            pages: Optional collection of pages for index and section templates.
        """
        self.engine = engine
        self.converter = converter or MarkdownConverter()
        self.pages = pages if pages is not None else PageCollection([])

    def template_for(self, document: Document) -> Template:
        """Select the template for a document.

        Uses the front-matter ``template`` when set, else ``section`` for
        section documents and ``page`` for everything else; a missing
        template falls back to ``default``.

        Raises:
            MissingTemplateSlot: If no candidate exists or it lacks a slot.
        """
        default = DEFAULT_SECTION_TEMPLATE if document.is_section else DEFAULT_PAGE_TEMPLATE
        names = [document.template] if document.template else []
        names.append(default)
        try:
            return self.engine.select(names)
        except MissingTemplateSlot as exc:
            raise MissingTemplateSlot(
                exc.template, exc.slot, path=document.path, message=exc.message
            ) from exc

    def context_for(self, document: Document, body_html: str) -> dict[str, Any]:
        """Build the template context for a document."""
        section_pages = (
            self.pages.in_folder(document.folder).sorted()
            if document.is_section
            else PageCollection([])
        )
        return {
            "title": document.title,
            "body": Markup(body_html),
            "date": document.date,
            "draft": document.draft,
            "description": document.description,
            "extra": document.extra,
            "page": document,
            "pages": self.pages,
            "section_pages": section_pages,
        }

    def render(self, document: Document, template: Template | None = None) -> RenderedPage:
        """Render a document into a page.

        Args:
            document: Document to render.
            template: Template to bind into; selected automatically when omitted.

        Returns:
            RenderedPage for the document.

        Raises:
            MissingTemplateSlot: If the template lacks the body slot.
            RenderError: If the template raises while rendering.
        """
        template = template or self.template_for(document)
        missing = [s for s in self.engine.required_slots if s not in template.slots]
        if missing:
            raise MissingTemplateSlot(template.name, missing[0], path=document.path)

        body_html = self._rewrite_inline_images(
            self.converter.convert(document.body), document.folder
        )
        try:
            html = template.render(self.context_for(document, body_html))
        except RenderError as exc:
            raise RenderError(document.path, f"{template.filename}: {exc.message}") from exc
        return RenderedPage(
            relative_path=document.output_path,
            html=html.encode("utf-8"),
            source=document.path,
        )

    def _rewrite_inline_images(self, html: str, folder: str) -> str:
        def repl(match: re.Match) -> str:
            src = match.group(1)
            rewritten = rewrite_image_path(src, folder)
            return match.group(0).replace(src, rewritten)

        return IMAGE_SRC_RE.sub(repl, html)
