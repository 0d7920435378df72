"""Template registry and layout resolution for Quire.

Layouts and includes are read once per run from the site's directories and
the theme's directories (site files shadow theme files of the same name),
compiled with Jinja2, and kept in a read-only registry.

A layout names its parent in an optional front-matter block::

    ---
    layout: default
    ---
    <article>{{ content }}</article>

Resolving a layout yields its chain from the leaf to the root. Rendering
fills the leaf's ``content`` insertion point first, then hands the result to
each ancestor in turn, so ``post -> default`` renders the post inside the
default layout.

Key classes:
- Template: A compiled layout or include.
- TemplateResolver: The registry; validates chains and renders them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

import jinja2
from jinja2 import Environment, FunctionLoader, TemplateSyntaxError, meta, nodes, select_autoescape
from markupsafe import Markup

from .errors import CyclicLayoutError, ParseError, UnresolvedReferenceError
from .frontmatter import split_frontmatter
from .renderers import pygments_css
from .utils import join_root_url, strip_template_suffix

logger = logging.getLogger(__name__)

CONTENT_INSERTION_POINT = "content"


@dataclass(frozen=True)
class Template:
    """A layout or include loaded into the registry.

    Attributes:
        name: Registry name (``post`` for layouts, ``head.html`` for includes).
        kind: ``layout`` or ``include``.
        path: File the template was read from.
        body: Template source without its front-matter.
        parent: Name of the parent layout, if any.
        frontmatter: Layout front-matter, exposed to templates as ``layout``.
        insertion_points: Variables the template reads from its context.
        includes: Include names the template references directly.
    """

    name: str
    kind: str
    path: Path
    body: str
    parent: str | None = None
    frontmatter: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    insertion_points: frozenset[str] = frozenset()
    includes: frozenset[str] = frozenset()
    compiled: jinja2.Template | None = field(default=None, compare=False, repr=False)

    @property
    def wraps_content(self) -> bool:
        return CONTENT_INSERTION_POINT in self.insertion_points

    def render(self, context: Mapping[str, Any]) -> str:
        if self.compiled is None:  # pragma: no cover - registry always compiles
            raise RuntimeError(f"template '{self.name}' was not compiled")
        return self.compiled.render(context)


def _iter_template_files(directory: Path) -> Iterable[tuple[str, Path]]:
    if not directory.is_dir():
        return
    for path in sorted(directory.rglob("*")):
        if path.is_file() and not path.name.startswith("."):
            yield path.relative_to(directory).as_posix(), path


class TemplateResolver:
    """Read-only registry of layouts and includes.

    Build it with ``from_dirs``; every layout chain is validated during
    construction, so a cycle anywhere in the registry fails the run before
    any page is rendered.

    Attributes:
        env: Jinja2 environment whose loader serves includes from the registry.
        layouts: Layout templates by name.
        include_templates: Include templates by name.
    """

    def __init__(
        self,
        layouts: dict[str, tuple[Path, str]],
        includes: dict[str, tuple[Path, str]],
        filters: Mapping[str, Any] | None = None,
    ):
        """Compile templates and validate layout chains.

        Args:
            layouts: Layout name to (path, raw source).
            includes: Include name to (path, source).
            filters: Extra Jinja filters.

        Raises:
            ParseError: On malformed layout front-matter or template syntax.
            CyclicLayoutError: If any layout chain revisits itself.
        """
        self._include_sources = {name: source for name, (_, source) in includes.items()}
        self.env = Environment(
            loader=FunctionLoader(self._load_include_source),
            autoescape=select_autoescape(["html", "xml"], default_for_string=True),
            keep_trailing_newline=True,
        )
        self.env.filters.update(default_filters())
        if filters:
            self.env.filters.update(filters)
        self.env.globals["pygments_css"] = _pygments_css

        self.include_templates: dict[str, Template] = {
            name: self._compile(name, "include", path, source, has_frontmatter=False)
            for name, (path, source) in includes.items()
        }
        self.layouts: dict[str, Template] = {
            name: self._compile(name, "layout", path, source, has_frontmatter=True)
            for name, (path, source) in layouts.items()
        }
        self._check_cycles()
        logger.debug(
            "Template registry: %d layouts, %d includes",
            len(self.layouts),
            len(self.include_templates),
        )

    @classmethod
    def from_dirs(
        cls,
        layout_dirs: Iterable[Path],
        include_dirs: Iterable[Path],
        filters: Mapping[str, Any] | None = None,
    ) -> TemplateResolver:
        """Scan template directories in priority order and build the registry.

        Args:
            layout_dirs: Layout directories, highest priority first.
            include_dirs: Include directories, highest priority first.
            filters: Extra Jinja filters.
        """
        layouts: dict[str, tuple[Path, str]] = {}
        for directory in layout_dirs:
            for rel, path in _iter_template_files(directory):
                name = strip_template_suffix(rel)
                if name is None or name in layouts:
                    continue
                layouts[name] = (path, _read(path))
        includes: dict[str, tuple[Path, str]] = {}
        for directory in include_dirs:
            for rel, path in _iter_template_files(directory):
                if rel not in includes:
                    includes[rel] = (path, _read(path))
        return cls(layouts, includes, filters=filters)

    def _load_include_source(self, name: str):
        source = self._include_sources.get(name)
        if source is None:
            return None
        return source, name, lambda: True

    def _compile(
        self, name: str, kind: str, path: Path, raw: str, has_frontmatter: bool
    ) -> Template:
        frontmatter: dict[str, Any] = {}
        body = raw
        if has_frontmatter:
            frontmatter, body = split_frontmatter(raw, path, required=False)
        try:
            ast = self.env.parse(body, name=name, filename=str(path))
            compiled = self.env.from_string(body)
        except TemplateSyntaxError as exc:
            raise ParseError(
                path, f"template syntax error on line {exc.lineno}: {exc.message}", exc
            ) from exc
        parent = frontmatter.get("layout")
        return Template(
            name=name,
            kind=kind,
            path=path,
            body=body,
            parent=str(parent) if parent else None,
            frontmatter=MappingProxyType(frontmatter),
            insertion_points=frozenset(meta.find_undeclared_variables(ast)),
            includes=_referenced_templates(ast),
            compiled=compiled,
        )

    def _check_cycles(self) -> None:
        for name in sorted(self.layouts):
            visited = [name]
            current = self.layouts[name].parent
            while current is not None and current in self.layouts:
                if current in visited:
                    raise CyclicLayoutError(visited[visited.index(current) :] + [current])
                visited.append(current)
                current = self.layouts[current].parent

    def resolve(self, layout_name: str, source: Path | str | None = None) -> Template:
        """Return the layout with the given name.

        Raises:
            UnresolvedReferenceError: If there is no such layout, attributed
                to ``source`` when given.
        """
        template = self.layouts.get(layout_name)
        if template is None:
            raise UnresolvedReferenceError(
                source or layout_name, f"layout '{layout_name}' not found"
            )
        return template

    def resolve_include(self, include_name: str, source: Path | str | None = None) -> Template:
        """Return the include with the given name.

        Raises:
            UnresolvedReferenceError: If there is no such include.
        """
        template = self.include_templates.get(include_name)
        if template is None:
            raise UnresolvedReferenceError(
                source or include_name, f"include '{include_name}' not found"
            )
        return template

    def resolve_chain(
        self, layout_name: str, source: Path | str | None = None
    ) -> tuple[Template, ...]:
        """Resolve a layout and its ancestors, leaf first.

        Every include reachable from the chain is checked as well, so a
        chain that resolves here renders without missing-template errors.

        Args:
            layout_name: Name of the leaf layout.
            source: Item the resolution is for, used in error attribution.

        Raises:
            UnresolvedReferenceError: For a missing layout, parent layout or
                include.
        """
        chain: list[Template] = []
        name: str | None = layout_name
        while name is not None:
            template = self.layouts.get(name)
            if template is None:
                referrer = f" (parent of layout '{chain[-1].name}')" if chain else ""
                raise UnresolvedReferenceError(
                    source or layout_name, f"layout '{name}' not found{referrer}"
                )
            chain.append(template)
            name = template.parent
        for template in chain:
            self._check_includes(template, source or layout_name)
        return tuple(chain)

    def _check_includes(self, template: Template, source: Path | str) -> None:
        pending = [(template, ref) for ref in sorted(template.includes)]
        seen: set[str] = set()
        while pending:
            referrer, ref = pending.pop()
            if ref in seen:
                continue
            seen.add(ref)
            include = self.include_templates.get(ref)
            if include is None:
                raise UnresolvedReferenceError(
                    source,
                    f"include '{ref}' not found (referenced by {referrer.kind} '{referrer.name}')",
                )
            pending.extend((include, nested) for nested in sorted(include.includes))

    def render_chain(
        self,
        chain: Iterable[Template],
        content: str,
        context: Mapping[str, Any],
    ) -> str:
        """Render content through a resolved chain, innermost first.

        Args:
            chain: Layouts from leaf to root.
            content: HTML for the leaf's ``content`` insertion point.
            context: Variables shared by every layout in the chain.

        Returns:
            The fully wrapped HTML.
        """
        rendered = content
        for template in chain:
            rendered = template.render(
                {
                    **context,
                    "layout": dict(template.frontmatter),
                    CONTENT_INSERTION_POINT: Markup(rendered),
                }
            )
        return rendered


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(path, f"could not read template: {exc}", exc) from exc


def _referenced_templates(ast: nodes.Template) -> frozenset[str]:
    """Names of the templates a parsed template must be able to load.

    ``{% include ... ignore missing %}`` is left out, as are names computed
    at render time.
    """
    refs = set()
    for node in ast.find_all((nodes.Include, nodes.Extends, nodes.Import, nodes.FromImport)):
        if isinstance(node, nodes.Include) and node.ignore_missing:
            continue
        if isinstance(node.template, nodes.Const) and isinstance(node.template.value, str):
            refs.add(node.template.value)
    return frozenset(refs)


def default_filters() -> dict[str, Any]:
    """Filters available in every template."""
    return {
        "relative_url": _relative_url,
        "absolute_url": _absolute_url,
        "date_to_xmlschema": _date_to_xmlschema,
        "date_format": _date_format,
    }


def _site_value(context, key: str) -> str:
    site = context.get("site") or {}
    return str(site.get(key, "") or "") if isinstance(site, Mapping) else ""


@jinja2.pass_context
def _relative_url(context, path: str) -> str:
    path = str(path)
    baseurl = _site_value(context, "baseurl")
    if baseurl:
        return join_root_url(baseurl, path)
    return path if path.startswith("/") else f"/{path}"


@jinja2.pass_context
def _absolute_url(context, path: str) -> str:
    relative = _relative_url(context, path)
    url = _site_value(context, "url")
    return join_root_url(url, relative) if url else relative


def _date_to_xmlschema(value: datetime) -> str:
    return value.isoformat()


def _date_format(value: datetime, fmt: str = "%b %d, %Y") -> str:
    return value.strftime(fmt)


def _pygments_css() -> Markup:
    """Syntax highlighting rules for the .highlight class."""
    return Markup(pygments_css())
