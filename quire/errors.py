"""Exceptions raised by the Quire build pipeline.

Every per-document failure carries the path it concerns so the build can
report it and move on to the next document.

Classes:
    QuireError: Base class for all Quire errors.
    ContentRootError: The content root is missing or unreadable.
    MalformedFrontMatter: A document's front matter is absent or invalid.
    MissingTemplateSlot: A template lacks a required insertion point.
    RenderError: A template raised while rendering a document.
    WriteError: An output file could not be written.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base class for errors raised while building a site.

    Attributes:
        path: File the error concerns.
        message: Human-readable error message.
    """

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        self.message = message
        super().__init__(f"{path}: {message}")


class ContentRootError(QuireError):
    """The content root does not exist or cannot be listed."""


class MalformedFrontMatter(QuireError):
    """Front matter is missing, unterminated, or has unparseable fields."""


class MissingTemplateSlot(QuireError):
    """No usable template provides an insertion point the renderer needs.

    Attributes:
        template: Name of the offending template.
        slot: Name of the missing slot.
    """

    def __init__(
        self,
        template: str,
        slot: str,
        path: Path | str | None = None,
        message: str | None = None,
    ):
        self.template = template
        self.slot = slot
        super().__init__(
            path if path is not None else template,
            message or f"template '{template}' has no '{slot}' slot",
        )


class RenderError(QuireError):
    """A template failed while rendering a document."""


class WriteError(QuireError):
    """An output file could not be created or written.

    Attributes:
        original_error: The underlying OS error, when there is one.
    """

    def __init__(
        self,
        path: Path | str,
        message: str,
        original_error: Exception | None = None,
    ):
        self.original_error = original_error
        super().__init__(path, message)
