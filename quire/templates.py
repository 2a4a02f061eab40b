"""Template loading for Quire.

Templates are Jinja2 files in the templates directory, identified by
name: ``page`` resolves to ``page.html`` (or ``page.html.jinja``,
``page.jinja``). Each template is loaded and checked once, then shared
read-only by every document that uses it.

Key classes:
- Template: A loaded template with its discovered insertion points.
- TemplateEngine: Loads, validates and caches templates.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import jinja2
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, meta, select_autoescape

from .errors import MissingTemplateSlot, RenderError
from .markup import pygments_css
from .utils import join_root_url

logger = logging.getLogger(__name__)

REQUIRED_SLOTS = ("body",)
TEMPLATE_SUFFIXES = (".html", ".html.jinja", ".jinja", "")
FALLBACK_TEMPLATE = "default"


def is_template_name(name: str) -> bool:
    """Return True if ``name`` stays inside the templates directory."""
    path = PurePosixPath(name.replace("\\", "/"))
    return bool(name) and not path.is_absolute() and ".." not in path.parts


@dataclass(frozen=True)
class Template:
    """A named, validated template.

    Attributes:
        name: Name the template was requested by.
        filename: File the name resolved to, relative to the templates directory.
        slots: Variables the template (and anything it extends or includes) reads.
        compiled: The compiled Jinja2 template.
    """

    name: str
    filename: str
    slots: frozenset[str]
    compiled: jinja2.Template

    def render(self, context: Mapping[str, Any]) -> str:
        """Render the template with the given context.

        Raises:
            RenderError: If anything raises while the template runs.
        """
        try:
            return self.compiled.render(**context)
        except Exception as exc:
            raise RenderError(self.filename, _format_template_error(exc)) from exc


def _format_template_error(exc: Exception) -> str:
    error_type = type(exc).__name__
    if isinstance(exc, jinja2.UndefinedError):
        return f"Undefined variable: {exc.message}"
    if isinstance(exc, jinja2.TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if isinstance(exc, jinja2.TemplateError):
        return f"{error_type}: {exc.message}"
    return f"{error_type}: {exc}"


class TemplateEngine:
    """Loads named templates from a directory with Jinja2.

    Attributes:
        templates_dir: Directory containing templates.
        config: Site configuration, exposed to templates as ``config``.
        root_url: Base URL used by ``url_for``.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        templates_dir: Path,
        config: Mapping[str, Any] | None = None,
        root_url: str | None = None,
        required_slots: Iterable[str] = REQUIRED_SLOTS,
    ):
        """Initialize the template engine.

        Args:
            templates_dir: Directory with templates.
            config: Site configuration.
            root_url: Optional base URL for links; defaults to config ``base_url``.
            required_slots: Variables every template must read.
        """
        self.templates_dir = templates_dir
        self.config = dict(config or {})
        self.root_url = root_url if root_url is not None else str(
            self.config.get("base_url") or ""
        )
        self.required_slots = tuple(required_slots)
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "htm", "xml", "jinja"]),
            keep_trailing_newline=True,
        )
        self._cache: dict[str, Template] = {}
        self._lock = threading.Lock()
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["config"] = self.config
        self.env.globals["url_for"] = self.url_for
        self.env.globals["pygments_css"] = pygments_css

    def url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured.

        Args:
            path: Site-relative path or absolute URL.

        Returns:
            URL with the root_url prefix when one is configured.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.root_url, path)

    def exists(self, name: str) -> bool:
        """Return True if a template file exists for ``name``."""
        return self._find_filename(name) is not None

    def _find_filename(self, name: str) -> str | None:
        if not is_template_name(name):
            return None
        for suffix in TEMPLATE_SUFFIXES:
            candidate = f"{name}{suffix}"
            if (self.templates_dir / candidate).is_file():
                return candidate
        return None

    def get(self, name: str) -> Template:
        """Return the named template, loading and validating it once.

        Args:
            name: Template name (file name without extension).

        Returns:
            The loaded Template.

        Raises:
            TemplateNotFound: If no file exists for the name.
            MissingTemplateSlot: If the template lacks a required slot.
            RenderError: If the template does not compile.
        """
        with self._lock:
            cached = self._cache.get(name)
            if cached is not None:
                return cached
            filename = self._find_filename(name)
            if filename is None:
                raise TemplateNotFound(name)
            try:
                compiled = self.env.get_template(filename)
                slots = frozenset(self._collect_slots(filename, set()))
            except jinja2.TemplateSyntaxError as exc:
                raise RenderError(
                    self.templates_dir / filename, _format_template_error(exc)
                ) from exc
            for slot in self.required_slots:
                if slot not in slots:
                    raise MissingTemplateSlot(name, slot, path=self.templates_dir / filename)
            template = Template(name=name, filename=filename, slots=slots, compiled=compiled)
            logger.debug("Loaded template %s from %s", name, filename)
            self._cache[name] = template
            return template

    def select(self, names: Iterable[str]) -> Template:
        """Return the first existing template among ``names``, then the fallback.

        Raises:
            MissingTemplateSlot: If none of the candidates exists, or a name
                points outside the templates directory.
        """
        candidates = list(dict.fromkeys([*names, FALLBACK_TEMPLATE]))
        for name in candidates:
            if not is_template_name(name):
                raise MissingTemplateSlot(
                    name,
                    self.required_slots[0] if self.required_slots else "body",
                    path=self.templates_dir,
                    message=f"template name {name!r} must be relative to the templates directory",
                )
        for name in candidates:
            if self.exists(name):
                return self.get(name)
        requested = candidates[0]
        raise MissingTemplateSlot(
            requested,
            self.required_slots[0] if self.required_slots else "body",
            path=self.templates_dir,
            message=f"no template named {' or '.join(repr(n) for n in candidates)}",
        )

    def _collect_slots(self, filename: str, seen: set[str]) -> set[str]:
        """Collect variables read by a template and the templates it references."""
        seen.add(filename)
        source, _, _ = self.env.loader.get_source(self.env, filename)
        ast = self.env.parse(source)
        slots = set(meta.find_undeclared_variables(ast))
        for ref in meta.find_referenced_templates(ast):
            if ref is None or ref in seen:
                continue
            try:
                slots |= self._collect_slots(ref, seen)
            except TemplateNotFound:
                logger.debug("Template %s references missing %s", filename, ref)
        return slots
