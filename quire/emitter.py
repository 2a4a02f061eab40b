"""Output emission for Quire.

Writes rendered pages below the output root, mirroring their relative
paths. Every write goes to a temporary file in the destination directory
and is renamed into place only after it has been flushed and synced, so
an interrupted or failed write never leaves a truncated page behind.

Key classes:
- Emitter: Writes RenderedPages and copies files into the output tree.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath

from .errors import WriteError
from .renderer import RenderedPage

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write bytes to a file atomically using a temporary file.

    Args:
        path: Destination file path.
        data: Content to write.
        mode: File permissions (octal).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)


class Emitter:
    """Writes pages and assets into an output directory.

    Attributes:
        output_dir: Root of the output tree.
        file_mode: Permissions for written files.
    """

    def __init__(self, output_dir: Path, file_mode: int = 0o644):
        self.output_dir = output_dir
        self.file_mode = file_mode

    def target_for(self, relative_path: PurePosixPath | str) -> Path:
        """Return the absolute output path for a relative path.

        Raises:
            WriteError: If the path would escape the output root.
        """
        rel = PurePosixPath(relative_path)
        if rel.is_absolute() or ".." in rel.parts:
            raise WriteError(rel.as_posix(), "output path escapes the output directory")
        return self.output_dir.joinpath(*rel.parts)

    def emit(self, page: RenderedPage) -> Path:
        """Write a rendered page to ``<output_dir>/<relative_path>``.

        Args:
            page: Page to write.

        Returns:
            Path of the written file.

        Raises:
            WriteError: If directories or the file cannot be created.
        """
        target = self.target_for(page.relative_path)
        try:
            atomic_write_bytes(target, page.html, self.file_mode)
        except OSError as exc:
            raise WriteError(target, f"cannot write page: {exc.strerror or exc}", exc) from exc
        logger.debug("Wrote %s", target)
        return target

    def copy(self, source: Path, relative_path: PurePosixPath | str) -> Path:
        """Copy a file verbatim into the output tree.

        Args:
            source: File to copy.
            relative_path: Destination relative to the output root.

        Returns:
            Path of the copy.

        Raises:
            WriteError: If the copy fails.
        """
        target = self.target_for(relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as exc:
            raise WriteError(target, f"cannot copy {source}: {exc.strerror or exc}", exc) from exc
        logger.debug("Copied %s -> %s", source, target)
        return target
