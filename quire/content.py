"""Content loading for Quire.

This module discovers documents under a content root and turns each one
into an immutable Document. Front matter parsing lives in the frontmatter
module; this module adds the path-derived properties (slug, URL, output
path) and the fallbacks for missing metadata.

Key classes:
- Document: Frozen dataclass representing one source document.
- UrlDeriver: Maps a source path and slug to a URL and an output path.
- ContentLoader: Lazily yields Documents, collecting per-file failures.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import ContentRootError, MalformedFrontMatter, QuireError
from .frontmatter import parse_frontmatter
from .utils import extract_date_from_name, is_hidden, is_markdown, slugify, titleize

logger = logging.getLogger(__name__)

SECTION_STEM = "_index"


@dataclass(frozen=True)
class Document:
    """A source document, immutable once loaded.

    Attributes:
        path: Path to the source file.
        relative_path: Source path relative to the content root.
        title: Human-readable title.
        date: Publish timestamp.
        draft: Whether the document is excluded from published output.
        body: Raw markup text following the front matter.
        description: Short summary for listings and feeds.
        slug: URL-friendly slug.
        url: Site-relative URL, always ending in a slash.
        output_path: Output file path relative to the output root.
        template: Template named in front matter, if any.
        is_section: True for ``_index.md`` documents.
        extra: Any other front-matter keys.
    """

    path: Path
    relative_path: PurePosixPath
    title: str
    date: datetime
    draft: bool
    body: str
    description: str = ""
    slug: str = ""
    url: str = "/"
    output_path: PurePosixPath = PurePosixPath("index.html")
    template: str | None = None
    is_section: bool = False
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def folder(self) -> str:
        """Folder of the source file relative to the content root ("" at the root)."""
        parent = self.relative_path.parent.as_posix()
        return "" if parent == "." else parent


class UrlDeriver:
    """Derives URLs and output paths for documents.

    ``posts/hello.md`` becomes ``/posts/hello/`` written to
    ``posts/hello/index.html``; a section's ``_index.md`` and a root
    ``index.md`` render their folder's ``index.html``.
    """

    def derive(self, rel: PurePosixPath, slug: str) -> tuple[str, PurePosixPath]:
        """Derive the URL and output path for a document.

        Args:
            rel: Source path relative to the content root.
            slug: URL-friendly slug.

        Returns:
            Tuple of (URL, output path relative to the output root).
        """
        segments = [p for p in rel.parent.parts if p not in ("", ".")]
        if rel.stem not in (SECTION_STEM, "index"):
            segments.append(slug)
        path = "/".join(segments)
        url = f"/{path}/" if path else "/"
        return url, PurePosixPath(*segments, "index.html")


class ContentLoader:
    """Loads documents from a content directory.

    Iteration is lazy and restartable: each call to iter_documents walks
    the tree again. Documents that fail to load are logged, recorded in
    ``errors`` and skipped.

    Attributes:
        content_dir: Root of the content tree.
        errors: Failures from the most recent iteration.
    """

    def __init__(self, content_dir: Path, url_deriver: UrlDeriver | None = None):
        """Initialize the content loader.

        Args:
            content_dir: Path to the content root.
            url_deriver: Optional custom URL deriver.
        """
        self.content_dir = content_dir
        self.url_deriver = url_deriver or UrlDeriver()
        self.errors: list[QuireError] = []

    def check_root(self) -> None:
        """Verify the content root exists and can be listed.

        Raises:
            ContentRootError: If the root is missing, not a directory or unreadable.
        """
        if not self.content_dir.is_dir():
            raise ContentRootError(self.content_dir, "content root is not a directory")
        if not os.access(self.content_dir, os.R_OK | os.X_OK):
            raise ContentRootError(self.content_dir, "content root is not readable")
        try:
            next(self.content_dir.iterdir(), None)
        except OSError as exc:
            raise ContentRootError(self.content_dir, f"cannot list content root: {exc}") from exc

    def _iter_paths(self) -> Iterator[Path]:
        for path in sorted(self.content_dir.rglob("*")):
            if path.is_dir():
                continue
            if is_hidden(path.relative_to(self.content_dir)):
                continue
            yield path

    def iter_files(self) -> Iterator[Path]:
        """Iterate over document source files in path order."""
        return (p for p in self._iter_paths() if is_markdown(p))

    def iter_assets(self) -> Iterator[Path]:
        """Iterate over co-located non-document files in path order."""
        return (p for p in self._iter_paths() if not is_markdown(p))

    def iter_documents(self) -> Iterator[Document]:
        """Yield every loadable document, skipping and recording failures.

        Yields:
            Document instances, drafts included.
        """
        self.errors = []
        for path in self.iter_files():
            try:
                yield self.load(path)
            except QuireError as exc:
                logger.warning("Skipping %s: %s", exc.path, exc.message)
                self.errors.append(exc)

    def load(self, path: Path) -> Document:
        """Build a Document from a source file.

        Args:
            path: Path to the source file.

        Returns:
            Document instance.

        Raises:
            MalformedFrontMatter: If the front matter is absent or invalid.
            QuireError: If the file cannot be read.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrontMatter(path, f"not valid UTF-8: {exc.reason}") from exc
        except OSError as exc:
            raise QuireError(path, f"cannot read file: {exc.strerror or exc}") from exc

        meta, body = parse_frontmatter(text, path)
        rel = PurePosixPath(path.relative_to(self.content_dir).as_posix())
        is_section = rel.stem == SECTION_STEM
        if is_section:
            fallback_title = titleize(rel.parent.name) if rel.parent.name else "Home"
        else:
            fallback_title = titleize(path.name)

        slug = slugify(meta.slug) if meta.slug else slugify(path.stem)
        url, output_path = self.url_deriver.derive(rel, slug)

        return Document(
            path=path,
            relative_path=rel,
            title=meta.title if meta.title is not None else fallback_title,
            date=meta.date or self._fallback_date(path),
            draft=meta.draft,
            body=body,
            description=meta.description,
            slug=slug,
            url=url,
            output_path=output_path,
            template=meta.template,
            is_section=is_section,
            extra=meta.extra,
        )

    @staticmethod
    def _fallback_date(path: Path) -> datetime:
        date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        return date
