from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timezone

from .content import Document


def sortable_date(value: datetime) -> datetime:
    """Return a naive UTC datetime so aware and naive dates compare."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PageCollection(Sequence[Document]):
    """Lightweight helper for working with lists of Documents in templates and code."""

    def __init__(self, pages: Iterable[Document]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def in_folder(self, folder: str) -> PageCollection:
        """Pages directly inside ``folder``, sections excluded."""
        return PageCollection(
            p for p in self._pages if p.folder == folder and not p.is_section
        )

    def sections(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.is_section)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort pages by date, then by source path.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PageCollection with sorted pages.
        """
        ordered = sorted(
            self._pages,
            key=lambda p: (sortable_date(p.date), p.relative_path.as_posix()),
            reverse=reverse,
        )
        return PageCollection(ordered)

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"
