"""Protocol definitions for Quire.

The pipeline stages meet at these narrow interfaces so that an
implementation can be swapped without touching its neighbours: the
markup converter can change without affecting loading or emission, and
the build can write pages through anything that behaves like an Emitter.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from .renderer import RenderedPage


@runtime_checkable
class MarkupConverter(Protocol):
    """Converts lightweight markup to HTML.

    Implementations must be pure: identical input yields identical output.
    """

    @abstractmethod
    def convert(self, text: str) -> str:
        """Convert markup text to an HTML fragment.

        Args:
            text: Source markup.

        Returns:
            HTML fragment.
        """
        ...


@runtime_checkable
class PageWriter(Protocol):
    """Writes rendered pages below an output root."""

    @abstractmethod
    def emit(self, page: RenderedPage) -> Path:
        """Write a rendered page.

        Args:
            page: Page to write.

        Returns:
            Absolute path of the written file.

        Raises:
            WriteError: If the file could not be written.
        """
        ...
