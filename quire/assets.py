"""Static asset copying for Quire.

Two kinds of files are copied verbatim into the output tree:
- Co-located assets: any non-document file in the content tree (images
  next to a post, for example) keeps its relative path.
- The static directory: its contents are copied onto the output root.

Key classes:
- AssetPipeline: Copies assets, collecting failures instead of stopping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from .emitter import Emitter
from .errors import WriteError
from .utils import is_hidden

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Copies static assets into the output directory.

    Attributes:
        content_dir: Content root holding co-located assets.
        static_dir: Directory copied onto the output root, if it exists.
        emitter: Emitter used for the copies.
        errors: Failed copies from the most recent run.
    """

    def __init__(self, content_dir: Path, static_dir: Path | None, emitter: Emitter):
        """Initialize the asset pipeline.

        Args:
            content_dir: Content root.
            static_dir: Optional static directory.
            emitter: Emitter writing into the output directory.
        """
        self.content_dir = content_dir
        self.static_dir = static_dir
        self.emitter = emitter
        self.errors: list[WriteError] = []

    def run(self, colocated: Iterable[Path]) -> list[Path]:
        """Copy co-located assets and the static directory.

        Args:
            colocated: Non-document files under the content root.

        Returns:
            Paths of the copies that were written.
        """
        self.errors = []
        written: list[Path] = []
        for source in colocated:
            rel = PurePosixPath(source.relative_to(self.content_dir).as_posix())
            self._copy(source, rel, written)
        for source in self._iter_static():
            rel = PurePosixPath(source.relative_to(self.static_dir).as_posix())
            self._copy(source, rel, written)
        return written

    def _iter_static(self) -> Iterable[Path]:
        if self.static_dir is None or not self.static_dir.is_dir():
            return []
        return (
            p
            for p in sorted(self.static_dir.rglob("*"))
            if p.is_file() and not is_hidden(p.relative_to(self.static_dir))
        )

    def _copy(self, source: Path, rel: PurePosixPath, written: list[Path]) -> None:
        try:
            written.append(self.emitter.copy(source, rel))
        except WriteError as exc:
            logger.warning("Skipping asset %s: %s", source, exc.message)
            self.errors.append(exc)
