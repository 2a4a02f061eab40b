"""Front matter parsing for Quire.

A document starts with a metadata block enclosed in delimiter lines:
``+++`` for TOML or ``---`` for YAML. The block is parsed into a
FrontMatter instance with typed fields; everything after the closing
delimiter is the document body.

Key functions:
- split_frontmatter: Separate the raw block from the body.
- parse_frontmatter: Parse and type-check the block.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedFrontMatter

DELIMITERS = {"+++": "toml", "---": "yaml"}

STRING_FIELDS = ("title", "description", "slug", "template")


@dataclass(frozen=True)
class FrontMatter:
    """Typed metadata parsed from a front-matter block.

    Attributes:
        title: Document title, if given.
        date: Publish timestamp, if given.
        draft: Whether the document is excluded from output.
        description: Short summary for listings and feeds.
        slug: Override for the output slug.
        template: Name of the template to render with.
        extra: Every other key, with an ``[extra]`` table merged in.
    """

    title: str | None = None
    date: datetime | None = None
    draft: bool = False
    description: str = ""
    slug: str | None = None
    template: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def split_frontmatter(text: str, path: Path) -> tuple[str, str, str]:
    """Split a document into its front-matter block and body.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        Tuple of (format, raw block, body) where format is "toml" or "yaml".

    Raises:
        MalformedFrontMatter: If the block is absent or never closed.
    """
    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines:
        raise MalformedFrontMatter(path, "file is empty; expected front matter")
    opener = lines[0].strip()
    fmt = DELIMITERS.get(opener)
    if fmt is None:
        raise MalformedFrontMatter(
            path, "missing front matter; expected a '+++' or '---' block"
        )
    for index in range(1, len(lines)):
        if lines[index].strip() == opener:
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            return fmt, block, body
    raise MalformedFrontMatter(path, f"front matter is missing its closing '{opener}'")


def _load_block(fmt: str, block: str, path: Path) -> dict[str, Any]:
    try:
        if fmt == "toml":
            data = tomllib.loads(block)
        else:
            data = yaml.safe_load(block)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise MalformedFrontMatter(path, f"invalid {fmt.upper()}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter(path, "front matter must be a key/value mapping")
    return data


def _coerce_date(value: Any, path: Path) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise MalformedFrontMatter(
                path, f"'date' is not an ISO-8601 date-time: {value!r}"
            ) from exc
    raise MalformedFrontMatter(path, f"'date' has unsupported type {type(value).__name__}")


def parse_frontmatter(text: str, path: Path) -> tuple[FrontMatter, str]:
    """Parse the front matter of a document.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        Tuple of (FrontMatter, body text).

    Raises:
        MalformedFrontMatter: If the block is absent, unterminated, not a
            mapping, or a recognized key has the wrong type.
    """
    fmt, block, body = split_frontmatter(text, path)
    data = _load_block(fmt, block, path)

    values: dict[str, Any] = {}
    if "date" in data:
        values["date"] = _coerce_date(data.pop("date"), path)
    if "draft" in data:
        draft = data.pop("draft")
        if not isinstance(draft, bool):
            raise MalformedFrontMatter(path, f"'draft' must be a boolean, got {draft!r}")
        values["draft"] = draft
    for key in STRING_FIELDS:
        if key in data:
            value = data.pop(key)
            if not isinstance(value, str):
                raise MalformedFrontMatter(path, f"'{key}' must be a string, got {value!r}")
            values[key] = value

    extra = data.pop("extra", {})
    if not isinstance(extra, dict):
        raise MalformedFrontMatter(path, "'extra' must be a table")
    values["extra"] = {**data, **extra}
    return FrontMatter(**values), body
