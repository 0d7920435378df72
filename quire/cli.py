"""Command-line interface for Quire.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new Quire site.
- build: Build the site into the output directory.
- post: Create a new post interactively.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import CONFIG_FILENAME
from .errors import ConfigError, QuireError
from .utils import slugify, strip_date_prefix, titleize

_WELCOME_POST = """\
Quire turns the posts in `_posts/` into a blog. Each post starts with a
front-matter block that sets its `title`, `date` and `layout`.

```python
def greet(name: str) -> str:
    return f"Hello, {name}!"
```
"""


@click.group()
@click.version_option(version=__version__, prog_name="quire")
def cli():
    """Quire static blog generator."""


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("quire")
    # Rebind to the current stderr on every invocation.
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Quire site."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quire site created at {target}")


@cli.command()
@click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root containing quire.yaml (defaults to the current directory)",
)
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides output_dir in quire.yaml)",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Threads for rendering posts")
@click.option("--strict", is_flag=True, help="Exit with an error if any post was skipped or a listing failed")
@click.option("-v", "--verbose", is_flag=True, help="Show progress logging")
def build(source: Path | None, output: Path | None, workers: int | None, strict: bool, verbose: bool):
    """Build the site into the output directory."""
    _configure_logging(verbose)
    project_root = (source or Path.cwd()).resolve()
    from .build import build_site

    try:
        result = build_site(project_root, output_dir_override=output, workers=workers)
    except QuireError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Resource: {_display_path(exc.source, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: [{exc.kind}] {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    report = result.report
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")
    lines = report.lines()
    click.echo(lines[0])
    for line in lines[1:]:
        click.echo(click.style(line, fg="yellow"))
    if strict and (report.failures or report.run_errors):
        raise SystemExit(1)


def _display_path(source: Path | str, project_root: Path) -> str:
    path = Path(source)
    if path.is_absolute():
        try:
            return path.relative_to(project_root).as_posix()
        except ValueError:
            return str(path)
    return str(source)


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    if not (project_root / CONFIG_FILENAME).exists():
        raise click.ClickException(
            f"No {CONFIG_FILENAME} found. Run this command from a Quire project root."
        )
    from .build import build_resolver
    from .config import load_config

    try:
        config = load_config(project_root)
        layouts = sorted(build_resolver(project_root, config).layouts)
    except ConfigError as exc:
        raise click.ClickException(exc.message) from None
    except QuireError as exc:
        raise click.ClickException(str(exc)) from None

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    default_layout = str(config.defaults.get("layout", "post"))
    choices = layouts or [default_layout]
    layout = questionary.select(
        "Layout:",
        choices=choices,
        default=default_layout if default_layout in choices else None,
        style=_questionary_style(),
    ).ask()
    if layout is None:
        raise click.Abort()

    tags = questionary.text("Tags (space separated, optional):", style=_questionary_style()).ask()
    if tags is None:
        raise click.Abort()

    posts_dir = project_root / config.posts_dir
    now = datetime.now(timezone.utc)
    slug = slugify(title)
    if slug in _get_existing_slugs(posts_dir):
        raise click.ClickException(f"A post with slug '{slug}' already exists")

    frontmatter = {"title": title, "date": now.strftime("%Y-%m-%d %H:%M:%S %z"), "layout": layout}
    if tags.strip():
        frontmatter["tags"] = tags.split()
    target = posts_dir / f"{now.strftime('%Y-%m-%d')}-{slug}.md"
    posts_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(_render_post(frontmatter, ""), encoding="utf-8")
    click.echo(f"Created {target.relative_to(project_root).as_posix()}")


def _get_existing_slugs(folder: Path) -> set[str]:
    """Slugs of the posts already in a folder."""
    slugs = set()
    if folder.exists():
        for f in folder.iterdir():
            if f.is_file() and f.suffix in (".md", ".markdown", ".html"):
                slugs.add(slugify(strip_date_prefix(f.stem)))
    return slugs


def _render_post(frontmatter: dict, body: str) -> str:
    block = yaml.safe_dump(frontmatter, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"---\n{block}---\n\n{body}"


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
    """Create the directory structure and files for a new Quire site.

    The bundled theme supplies layouts and includes; the empty site
    directories are where overrides go.
    """
    root.mkdir(parents=True, exist_ok=True)
    config = {
        "title": titleize(root.name),
        "description": "",
        "url": "",
        "author": "",
        "paginate": 10,
        "theme": "quire",
    }
    (root / CONFIG_FILENAME).write_text(
        yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
    )
    for name in ("_layouts", "_includes", "assets"):
        (root / name).mkdir(exist_ok=True)
    posts_dir = root / "_posts"
    posts_dir.mkdir(exist_ok=True)
    today = datetime.now(timezone.utc)
    welcome = {"title": "Welcome to Quire", "date": today.strftime("%Y-%m-%d"), "layout": "post"}
    (posts_dir / f"{today.strftime('%Y-%m-%d')}-welcome-to-quire.md").write_text(
        _render_post(welcome, _WELCOME_POST), encoding="utf-8"
    )
