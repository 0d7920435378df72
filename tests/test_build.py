from pathlib import Path

import pytest

from quire.build import build_site
from quire.errors import ConfigError, CyclicLayoutError, ParseError
from quire.report import ItemState


def write(root: Path, name: str, text: str) -> None:
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def make_project(root: Path, config: str = "title: Functional Notes\nurl: https://example.com\npaginate: 2\n") -> Path:
    write(root, "quire.yaml", config)
    write(
        root,
        "_posts/2024-03-09-either.md",
        "---\ntitle: Either\ntags: [fp]\n---\nHandling failure.\n\n```python\nprint('hi')\n```\n",
    )
    write(root, "_posts/2024-03-10-option.md", "---\ntitle: Option\n---\nMaybe a value.\n")
    write(root, "_posts/2024-03-11-validated.md", "---\ntitle: Validated\n---\nAccumulate errors.\n")
    write(root, "_posts/2024-03-12-broken.md", "title: no front-matter\n")
    write(root, "assets/images/logo.svg", "<svg></svg>")
    return root


def test_build_writes_pages_assets_and_feeds(tmp_path):
    root = make_project(tmp_path)
    result = build_site(root)
    site = root / "_site"

    assert result.output_dir == site
    post = (site / "2024/03/09/either/index.html").read_text(encoding="utf-8")
    assert "<title>Either | Functional Notes</title>" in post
    assert '<link rel="canonical" href="https://example.com/2024/03/09/either/" />' in post
    assert 'class="highlight"' in post
    assert "<li>fp</li>" in post

    home = (site / "index.html").read_text(encoding="utf-8")
    assert home.index("Validated") < home.index("Option")
    assert "Either" not in home
    page2 = (site / "page2/index.html").read_text(encoding="utf-8")
    assert "Either" in page2
    assert "Page 2 of 2" in page2

    assert (site / "assets/css/style.css").exists()
    assert (site / "assets/images/logo.svg").exists()
    assert sorted(result.feeds) == ["feed.xml", "sitemap.xml"]
    assert "<loc>https://example.com/2024/03/10/option/</loc>" in (site / "sitemap.xml").read_text()
    assert "<title>Validated</title>" in (site / "feed.xml").read_text()


def test_build_report_counts_skipped_posts(tmp_path):
    result = build_site(make_project(tmp_path))
    report = result.report
    assert report.state_of("2024-03-12-broken.md") is ItemState.FAILED
    assert report.summary() == "3 succeeded, 1 skipped (ParseError: 1)"
    assert report.pages_written == len(result.pages) == 5
    assert not (tmp_path / "_site/2024/03/12").exists()


def test_site_layouts_override_theme(tmp_path):
    root = make_project(tmp_path)
    write(root, "_layouts/post.html", "---\nlayout: default\n---\n<div class=\"custom\">{{ content }}</div>")
    build_site(root)
    post = (root / "_site/2024/03/10/option/index.html").read_text(encoding="utf-8")
    assert '<div class="custom"><p>Maybe a value.</p>' in post
    assert "<!DOCTYPE html>" in post


def test_output_override_and_no_feeds_without_url(tmp_path):
    root = make_project(tmp_path / "project", config="title: Notes\n")
    out = tmp_path / "public"
    result = build_site(root, output_dir_override=out, workers=3)
    assert (out / "index.html").exists()
    assert result.feeds == []
    assert not (out / "sitemap.xml").exists()


def test_stale_output_is_removed(tmp_path):
    root = make_project(tmp_path)
    write(root, "_site/stale.html", "old")
    build_site(root)
    assert not (root / "_site/stale.html").exists()


def test_missing_config_is_fatal(tmp_path):
    with pytest.raises(ConfigError):
        build_site(tmp_path)


def test_cyclic_layouts_abort_before_writing(tmp_path):
    root = make_project(tmp_path)
    write(root, "_layouts/post.html", "---\nlayout: wrapper\n---\n{{ content }}")
    write(root, "_layouts/wrapper.html", "---\nlayout: post\n---\n{{ content }}")
    with pytest.raises(CyclicLayoutError):
        build_site(root)
    assert not (root / "_site").exists()


def test_broken_template_is_fatal(tmp_path):
    root = make_project(tmp_path)
    write(root, "_includes/footer.html", "{% for %}")
    with pytest.raises(ParseError):
        build_site(root)


def test_theme_can_be_disabled(tmp_path):
    root = make_project(tmp_path, config="title: Notes\ntheme: null\n")
    write(root, "_layouts/post.html", "<p>{{ page.title }}</p>")
    write(root, "_layouts/home.html", "{% for post in paginator.items %}{{ post.title }};{% endfor %}")
    result = build_site(root)
    assert (root / "_site/2024/03/09/either/index.html").read_text() == "<p>Either</p>"
    assert (root / "_site/index.html").read_text() == "Validated;Option;Either;"
    assert not (root / "_site/assets/css").exists()
    assert len(result.pages) == 4


@pytest.mark.parametrize("output_dir", [".", "./", "_posts"])
def test_output_dir_over_sources_is_rejected(tmp_path, output_dir):
    root = make_project(tmp_path, config=f"title: Notes\noutput_dir: '{output_dir}'\n")
    with pytest.raises(ConfigError) as excinfo:
        build_site(root)
    assert "output directory would overwrite" in excinfo.value.message
    assert (root / "quire.yaml").exists()
    assert (root / "_posts/2024-03-10-option.md").exists()


def test_output_override_at_project_parent_is_rejected(tmp_path):
    root = make_project(tmp_path / "project")
    with pytest.raises(ConfigError):
        build_site(root, output_dir_override=tmp_path)
    assert (root / "quire.yaml").exists()


def test_climbing_permalink_writes_nothing_outside_output(tmp_path):
    root = make_project(tmp_path / "project")
    write(root, "_posts/2024-03-13-escape.md", "---\ntitle: Escape\npermalink: /../../escaped/\n---\nOut.\n")
    result = build_site(root)
    assert result.report.state_of("2024-03-13-escape.md") is ItemState.FAILED
    assert not (tmp_path / "escaped").exists()
    assert not (root / "escaped").exists()
    assert result.report.summary() == "3 succeeded, 2 skipped (ParseError: 2)"
