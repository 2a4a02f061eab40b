"""Command-line interface for Quire.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- init: Scaffold a new Quire project.
- new: Create a new draft post.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import click
import questionary

from . import __version__
from .utils import slugify

logger = logging.getLogger(__name__)

# Files copied by `quire init`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name="quire")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """Quire static site generator."""
    _configure_logging(verbose)


@cli.command()
@click.option(
    "--content",
    "content_dir",
    type=click.Path(path_type=Path, file_okay=False),
    help="Content root (overrides quire.yaml content_dir).",
)
@click.option(
    "--output",
    "output_dir",
    type=click.Path(path_type=Path),
    help="Output root (overrides quire.yaml output_dir).",
)
@click.option(
    "--templates",
    "templates_dir",
    type=click.Path(path_type=Path, file_okay=False),
    help="Templates directory (overrides quire.yaml templates_dir).",
)
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    required=False,
    help="Render documents on N threads (overrides quire.yaml workers).",
)
@click.option(
    "--clean/--no-clean",
    default=True,
    help="Empty the output directory before building.",
)
def build(
    content_dir: Path | None,
    output_dir: Path | None,
    templates_dir: Path | None,
    drafts: bool,
    workers: int | None,
    clean: bool,
):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import build_site
    from .errors import ContentRootError

    try:
        report = build_site(
            project_root,
            include_drafts=drafts,
            clean_output=clean,
            output_dir_override=output_dir,
            content_dir_override=content_dir,
            templates_dir_override=templates_dir,
            workers=workers,
        )
    except ContentRootError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Content root: {exc.path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    if report.failures:
        click.echo(
            click.style(
                f"Build finished with {report.failure_count} failure(s):",
                fg="red",
                bold=True,
            ),
            err=True,
        )
        for failure in report.failures:
            location = _display_path(failure.path, project_root)
            click.echo(
                click.style(f"  {location}: ", fg="yellow") + failure.message, err=True
            )
    click.echo(f"Built {len(report.pages)} pages into {report.output_dir}")
    if report.drafts:
        click.echo(f"Skipped {len(report.drafts)} draft(s); use --drafts to include them")
    if report.failures:
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides quire.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides quire.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
@click.argument("name")
def init(name: str):
    """Scaffold a new Quire project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quire site created at {target}")


@cli.command()
@click.argument("title", required=False)
@click.option("--section", help="Content folder for the post, e.g. 'posts'.")
def new(title: str | None, section: str | None):
    """Create a new draft post."""
    project_root = Path.cwd()
    from .build import load_config, resolve_dir

    config = load_config(project_root)
    content_dir = resolve_dir(project_root, config["content_dir"])
    if not content_dir.is_dir():
        raise click.ClickException(
            f"No content directory found at {content_dir}. Run this command from a Quire project root."
        )

    if section is None:
        section = questionary.select(
            "Select section:",
            choices=_get_content_folders(content_dir),
            style=_questionary_style(),
        ).ask()
        if section is None:
            raise click.Abort()

    if title is None:
        title = questionary.text(
            "Title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()
    if not title:
        raise click.ClickException("Title cannot be empty")

    target_dir = content_dir if section in ("", ".", ". (root)") else content_dir / section
    target_path = target_dir / f"{slugify(title)}.md"
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {_display_path(target_path, project_root)}"
        )

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(_post_template(title, datetime.now(timezone.utc)), encoding="utf-8")
    click.echo(f"Created {_display_path(target_path, project_root)}")


def _post_template(title: str, when: datetime) -> str:
    """Return the source of a new draft post with TOML front matter."""
    stamp = when.replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")
    return (
        "+++\n"
        f"title = {json.dumps(title, ensure_ascii=False)}\n"
        f"date = {stamp}\n"
        "draft = true\n"
        "+++\n\n"
    )


def _display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def _get_content_folders(content_dir: Path) -> list[str]:
    """List top-level content folders, root option first."""
    folders = sorted(
        p.name for p in content_dir.iterdir() if p.is_dir() and not p.name.startswith(".")
    )
    folders.insert(0, ". (root)")
    return folders


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Quire project.

    Args:
        root: Root directory for the new project.
    """
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir() or src_path.name == "__pycache__":
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logger.debug("git init failed in %s: %s", root, exc)
