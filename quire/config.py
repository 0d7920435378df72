"""Site configuration for Quire.

The configuration is read once per run from ``quire.yaml`` at the project
root and turned into an immutable SiteConfig that is passed explicitly to
every stage that needs it.

Key items:
- SiteConfig: Frozen dataclass holding every setting with its default.
- load_config: Reads and validates quire.yaml, raising ConfigError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .errors import ConfigError
from .utils import join_root_url, normalize_url

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quire.yaml"
BUNDLED_THEME = "quire"
BUNDLED_THEME_DIR = Path(__file__).parent / "theme"


def _frozen(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class SiteConfig:
    """Read-only settings for a single generation run.

    Attributes:
        title: Site name, used in listings and as the SEO site name.
        description: Default SEO description.
        url: Scheme and host of the deployed site, e.g. https://example.com.
        baseurl: Sub-path the site is served under, e.g. /blog.
        author: Default SEO author.
        image: Default SEO image.
        twitter_username: Twitter handle for twitter:site.
        locale: og:locale value.
        paginate: Number of posts per listing page.
        paginate_path: URL pattern for listing pages after the first.
        paginate_layout: Layout used to render listing pages.
        permalink: URL pattern for posts.
        posts_dir: Directory holding posts, relative to the project root.
        layouts_dir: Site layout directory, overrides theme layouts.
        includes_dir: Site include directory, overrides theme includes.
        output_dir: Output directory, relative to the project root.
        theme_dir: Resolved theme directory, or None for no theme.
        workers: Threads used to compose post pages.
        defaults: Front-matter values applied to every post.
        extra: Unrecognised keys, exposed to templates as site.<key>.
    """

    title: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    author: str = ""
    image: str = ""
    twitter_username: str = ""
    locale: str = "en_US"
    paginate: int = 10
    paginate_path: str = "/page:num/"
    paginate_layout: str = "home"
    permalink: str = "/:year/:month/:day/:title/"
    posts_dir: str = "_posts"
    layouts_dir: str = "_layouts"
    includes_dir: str = "_includes"
    output_dir: str = "_site"
    theme_dir: Path | None = BUNDLED_THEME_DIR
    workers: int = 1
    defaults: Mapping[str, Any] = field(
        default_factory=lambda: _frozen({"layout": "post"})
    )
    extra: Mapping[str, Any] = field(default_factory=_frozen)

    def absolute_url(self, path: str) -> str:
        """Return the canonical URL for a site-relative path."""
        relative = join_root_url(self.baseurl, path) if self.baseurl else path
        if not self.url:
            return relative
        return join_root_url(self.url, relative)

    def as_context(self) -> dict[str, Any]:
        """Return the settings as a plain dict for template contexts."""
        context = dict(self.extra)
        for f in fields(self):
            if f.name in ("extra", "theme_dir"):
                continue
            context[f.name] = getattr(self, f.name)
        context["defaults"] = dict(self.defaults)
        return context


_STRING_KEYS = {
    f.name for f in fields(SiteConfig) if f.type in ("str", str)
}


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from quire.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        The validated SiteConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        raise ConfigError(config_path, "configuration file not found")
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(config_path, f"could not read configuration: {exc}", exc) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(config_path, "configuration must be a mapping")
    config = build_config(loaded, project_root, source=config_path)
    logger.debug("Loaded configuration from %s", config_path)
    return config


def build_config(
    values: Mapping[str, Any],
    project_root: Path,
    source: Path | str = CONFIG_FILENAME,
) -> SiteConfig:
    """Validate raw configuration values and build a SiteConfig.

    Args:
        values: Mapping of configuration keys to values.
        project_root: Directory that relative paths are resolved against.
        source: Name used in error messages.

    Returns:
        SiteConfig with defaults applied.
    """
    known = {f.name for f in fields(SiteConfig)} - {"theme_dir", "extra"}
    kwargs: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in values.items():
        key = str(key)
        if key == "theme":
            continue
        if key not in known:
            extra[key] = value
            continue
        if key in _STRING_KEYS:
            if value is None:
                value = ""
            if not isinstance(value, (str, int, float)):
                raise ConfigError(source, f"'{key}' must be a string")
            value = str(value)
        kwargs[key] = value

    for key in ("paginate", "workers"):
        if key in kwargs:
            value = kwargs[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(source, f"'{key}' must be a positive integer")

    if ":num" not in kwargs.get("paginate_path", ":num"):
        raise ConfigError(source, "'paginate_path' must contain ':num'")
    for key in ("permalink", "paginate_path"):
        if key in kwargs:
            try:
                normalize_url(str(kwargs[key]))
            except ValueError as exc:
                raise ConfigError(source, f"'{key}' is invalid: {exc}", exc) from exc

    if "defaults" in kwargs:
        defaults = kwargs["defaults"]
        if defaults is None:
            defaults = {}
        if not isinstance(defaults, dict):
            raise ConfigError(source, "'defaults' must be a mapping")
        kwargs["defaults"] = _frozen(defaults)

    if "baseurl" in kwargs and kwargs["baseurl"]:
        kwargs["baseurl"] = "/" + kwargs["baseurl"].strip("/")
    if "url" in kwargs:
        kwargs["url"] = kwargs["url"].rstrip("/")

    kwargs["theme_dir"] = _resolve_theme(values.get("theme", BUNDLED_THEME), project_root, source)
    kwargs["extra"] = _frozen(extra)
    return SiteConfig(**kwargs)


def _resolve_theme(theme: Any, project_root: Path, source: Path | str) -> Path | None:
    """Resolve the theme setting to a directory.

    Args:
        theme: "quire" for the bundled theme, None/False for no theme,
            otherwise a directory path relative to the project root.
        project_root: Project root directory.
        source: Name used in error messages.

    Returns:
        Theme directory or None.
    """
    if theme is None or theme is False:
        return None
    if theme == BUNDLED_THEME:
        return BUNDLED_THEME_DIR
    if not isinstance(theme, str):
        raise ConfigError(source, "'theme' must be a string or null")
    theme_dir = (project_root / theme).resolve()
    if not theme_dir.is_dir():
        raise ConfigError(source, f"theme directory not found: {theme_dir}")
    return theme_dir
