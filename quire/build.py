"""Site building functionality for Quire.

This module drives the pipeline: it loads configuration, loads documents,
renders every publishable document through its template, writes the
result, then copies assets and writes feeds.

A failing document never stops the build. Its error is logged and
collected in the BuildReport, and the caller decides the exit status from
the failure count.

Key functions:
- build_site: Build the entire site.
- load_config: Load site configuration from quire.yaml.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .assets import AssetPipeline
from .collections import PageCollection
from .content import ContentLoader, Document
from .emitter import Emitter
from .errors import QuireError, WriteError
from .feeds import create_default_feed_registry
from .renderer import Renderer
from .templates import TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quire.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "output_dir": "public",
    "templates_dir": "templates",
    "static_dir": "static",
    "base_url": "",
    "title": "",
    "port": 4000,
    "workers": 1,
    "feeds": True,
}


@dataclass
class BuildReport:
    """Result of a site build.

    Attributes:
        pages: Documents whose pages were written.
        output_dir: Directory the site was built into.
        config: Effective configuration.
        failures: Every per-file error collected during the build.
        drafts: Draft documents left out of the output.
        assets: Copied asset files.
        feeds: Feed filenames that were written.
        cancelled: True if the build stopped early on request.
    """

    pages: list[Document]
    output_dir: Path
    config: dict[str, Any]
    failures: list[QuireError] = field(default_factory=list)
    drafts: list[Document] = field(default_factory=list)
    assets: list[Path] = field(default_factory=list)
    feeds: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from quire.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
            else:
                logger.warning("Ignoring %s: expected a mapping", config_path)
    return config


def resolve_dir(project_root: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else project_root / path


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    content_dir_override: Path | None = None,
    templates_dir_override: Path | None = None,
    workers: int | None = None,
    cancel: threading.Event | None = None,
) -> BuildReport:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to publish documents marked ``draft``.
        root_url: Optional base URL overriding config ``base_url``.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write output here instead of config ``output_dir``.
        content_dir_override: Read documents from here instead of config ``content_dir``.
        templates_dir_override: Read templates from here instead of config ``templates_dir``.
        workers: Number of worker threads; 1 renders sequentially.
        cancel: Event that stops the build between documents when set.

    Returns:
        BuildReport describing what was written and what failed.

    Raises:
        ContentRootError: If the content root is missing or unreadable.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["base_url"] = root_url
    content_dir = content_dir_override or resolve_dir(project_root, config["content_dir"])
    output_dir = output_dir_override or resolve_dir(project_root, config["output_dir"])
    templates_dir = templates_dir_override or resolve_dir(
        project_root, config["templates_dir"]
    )
    static_dir = (
        resolve_dir(project_root, config["static_dir"]) if config.get("static_dir") else None
    )
    worker_count = max(1, int(workers if workers is not None else config.get("workers") or 1))

    loader = ContentLoader(content_dir)
    loader.check_root()

    report = BuildReport(pages=[], output_dir=output_dir, config=config)
    documents = list(loader.iter_documents())
    report.failures.extend(loader.errors)

    publishable: list[Document] = []
    for document in documents:
        if document.draft and not include_drafts:
            logger.debug("Skipping draft %s", document.relative_path)
            report.drafts.append(document)
        else:
            publishable.append(document)
    publishable = _drop_duplicate_outputs(publishable, report)

    try:
        if clean_output:
            ensure_clean_dir(output_dir)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        error = WriteError(output_dir, f"cannot prepare output directory: {exc.strerror or exc}", exc)
        logger.warning("%s", error)
        report.failures.append(error)

    engine = TemplateEngine(templates_dir, config, root_url=config.get("base_url") or "")
    renderer = Renderer(engine, pages=PageCollection(publishable).sorted())
    emitter = Emitter(output_dir)

    def process(document: Document) -> Document | None:
        if cancel is not None and cancel.is_set():
            return None
        try:
            emitter.emit(renderer.render(document))
        except QuireError as exc:
            logger.warning("Failed %s: %s", document.relative_path, exc.message)
            report.failures.append(exc)
            return None
        return document

    if worker_count > 1:
        with ThreadPoolExecutor(max_workers=worker_count) as pool:
            results = list(pool.map(process, publishable))
    else:
        results = []
        for document in publishable:
            if cancel is not None and cancel.is_set():
                break
            results.append(process(document))
    report.pages = [d for d in results if d is not None]

    if cancel is not None and cancel.is_set():
        logger.info("Build cancelled after %d pages", len(report.pages))
        report.cancelled = True
        return report

    assets = AssetPipeline(content_dir, static_dir, emitter)
    report.assets = assets.run(loader.iter_assets())
    report.failures.extend(assets.errors)

    if config.get("feeds", True):
        registry = create_default_feed_registry()
        report.feeds = registry.generate_all(emitter, report.pages, config)
        report.failures.extend(registry.errors)

    return report


def _drop_duplicate_outputs(documents: list[Document], report: BuildReport) -> list[Document]:
    """Keep the first document per output path and report the rest."""
    seen: dict[str, Document] = {}
    kept: list[Document] = []
    for document in documents:
        key = document.output_path.as_posix()
        if key in seen:
            error = WriteError(
                document.path,
                f"output {key} is already produced by {seen[key].relative_path}",
            )
            logger.warning("%s", error)
            report.failures.append(error)
            continue
        seen[key] = document
        kept.append(document)
    return kept
