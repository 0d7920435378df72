"""Site building for Quire.

This module runs one generation: it loads the configuration, loads posts,
builds the template registry, composes pages and writes the output tree.

Stages run strictly in order. Item-local failures end up in the run
report; a ConfigError, CyclicLayoutError or template ParseError propagates
and aborts the build before anything is written.

Key functions:
- build_site: Main function to build the entire site.
- build_resolver: Builds the template registry from site and theme dirs.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from .compose import Page, PageComposer
from .config import CONFIG_FILENAME, SiteConfig, load_config
from .content import ContentItem, ContentLoader
from .errors import ConfigError
from .feeds import create_default_feed_registry
from .report import RunReport
from .templates import TemplateResolver
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

ASSETS_DIR = "assets"


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        pages: Pages written, posts first then listings.
        items: Posts that loaded successfully.
        output_dir: Directory where the site was built.
        config: Configuration used for the run.
        report: Per-post outcomes and the run summary.
        feeds: Feed filenames written.
    """

    pages: list[Page]
    items: list[ContentItem]
    output_dir: Path
    config: SiteConfig
    report: RunReport
    feeds: list[str]


def build_resolver(project_root: Path, config: SiteConfig) -> TemplateResolver:
    """Build the template registry; site directories shadow the theme's.

    Raises:
        CyclicLayoutError: If any layout chain is cyclic.
        ParseError: If a layout or include cannot be parsed.
    """
    layout_dirs = [project_root / config.layouts_dir]
    include_dirs = [project_root / config.includes_dir]
    if config.theme_dir is not None:
        layout_dirs.append(config.theme_dir / "_layouts")
        include_dirs.append(config.theme_dir / "_includes")
    return TemplateResolver.from_dirs(layout_dirs, include_dirs)


def build_site(
    project_root: Path,
    output_dir_override: Path | None = None,
    clean_output: bool = True,
    workers: int | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project (holds quire.yaml).
        output_dir_override: Optional path to write the build output instead
            of the configured output_dir.
        clean_output: Whether to wipe the output directory before writing.
        workers: Threads for per-post rendering; overrides the config value.

    Returns:
        BuildResult with pages, report and output directory.

    Raises:
        ConfigError: If quire.yaml is missing or invalid, or the output
            directory would overwrite the project or its sources.
        CyclicLayoutError: If the template registry holds a layout cycle.
        ParseError: If a layout or include cannot be parsed.
    """
    config = load_config(project_root)
    output_dir = output_dir_override or (project_root / config.output_dir)
    _check_output_dir(output_dir, project_root, config)
    report = RunReport()

    items = ContentLoader(config).load(project_root / config.posts_dir, report)
    resolver = build_resolver(project_root, config)
    composition = PageComposer(resolver, config, workers=workers).compose(items, report)

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    for page in composition.pages:
        _write_page(output_dir, page)
    report.pages_written = len(composition.pages)

    _copy_assets(project_root, config, output_dir)
    feeds = create_default_feed_registry().generate_all(output_dir, composition.pages, config)

    logger.info("Built %d pages into %s: %s", len(composition.pages), output_dir, report.summary())
    return BuildResult(
        pages=composition.pages,
        items=items,
        output_dir=output_dir,
        config=config,
        report=report,
        feeds=feeds,
    )


def _write_page(output_dir: Path, page: Page) -> None:
    target = output_dir / page.output_path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(page.body)


def _copy_assets(project_root: Path, config: SiteConfig, output_dir: Path) -> None:
    """Copy theme assets, then site assets over them, into the output."""
    sources = []
    if config.theme_dir is not None:
        sources.append(config.theme_dir / ASSETS_DIR)
    sources.append(project_root / ASSETS_DIR)
    for source in sources:
        if source.is_dir():
            shutil.copytree(source, output_dir / ASSETS_DIR, dirs_exist_ok=True)


def _check_output_dir(output_dir: Path, project_root: Path, config: SiteConfig) -> None:
    """Refuse an output directory that cleaning would take sources with.

    Raises:
        ConfigError: If the output directory is, or contains, the project
            root, a source directory or the theme.
    """
    target = output_dir.resolve()
    root = project_root.resolve()
    protected = [root / CONFIG_FILENAME, root / ASSETS_DIR]
    protected += [root / name for name in (config.posts_dir, config.layouts_dir, config.includes_dir)]
    if config.theme_dir is not None:
        protected.append(config.theme_dir.resolve())
    for path in [root, *(p.resolve() for p in protected)]:
        if target == path or target in path.parents:
            raise ConfigError(
                output_dir,
                f"output directory would overwrite {path}; choose a directory that holds no sources",
            )
