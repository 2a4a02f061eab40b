from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath

from quire.collections import PageCollection, sortable_date
from quire.content import Document


def make_page(title, rel, date=None, draft=False, is_section=False):
    return Document(
        path=Path("content") / rel,
        relative_path=PurePosixPath(rel),
        title=title,
        date=date or datetime(2024, 1, 1),
        draft=draft,
        body="",
        is_section=is_section,
    )


def test_page_collection_filters_and_latest():
    pages = PageCollection(
        [
            make_page("A", "posts/a.md", date=datetime(2024, 1, 2)),
            make_page("B", "posts/b.md", date=datetime(2024, 1, 3), draft=True),
            make_page("C", "c.md", date=datetime(2024, 1, 1)),
            make_page("Posts", "posts/_index.md", is_section=True),
        ]
    )
    assert len(pages) == 4
    assert [p.title for p in pages.in_folder("posts")] == ["A", "B"]
    assert [p.title for p in pages.in_folder("")] == ["C"]
    assert [p.title for p in pages.sections()] == ["Posts"]
    assert [p.title for p in pages.published()] == ["A", "C", "Posts"]
    assert [p.title for p in pages.drafts()] == ["B"]
    assert pages.latest(1)[0].title == "B"
    assert [p.title for p in pages.sorted(reverse=False)] == ["C", "Posts", "A", "B"]


def test_same_date_sorts_by_source_path():
    pages = PageCollection(
        [
            make_page("Third", "03-third.md"),
            make_page("First", "01-first.md"),
            make_page("Second", "02-second.md"),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=False)] == ["First", "Second", "Third"]
    assert [p.title for p in pages.sorted()] == ["Third", "Second", "First"]


def test_aware_and_naive_dates_compare():
    aware = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
    assert sortable_date(aware) == datetime(2024, 1, 1, 10)
    pages = PageCollection(
        [
            make_page("Naive", "naive.md", date=datetime(2024, 1, 1, 11)),
            make_page("Aware", "aware.md", date=aware),
        ]
    )
    assert [p.title for p in pages.sorted()] == ["Naive", "Aware"]
