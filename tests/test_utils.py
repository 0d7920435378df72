from datetime import datetime, timezone
from pathlib import Path

import pytest

from quire import utils


def test_slugify_and_titleize_strip_date():
    assert utils.slugify("2024-01-02-post-title") == "post-title"
    assert utils.slugify("Railway Oriented Programming!") == "railway-oriented-programming"
    assert utils.slugify("!!!") == "index"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("getting_started.md") == "Getting Started"


def test_extract_date_from_name():
    assert utils.extract_date_from_name("2024-01-15-cool") == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert utils.extract_date_from_name("invalid") is None
    assert utils.extract_date_from_name("2024-13-32-post") is None
    assert utils.strip_date_prefix("2024-01-15-cool-post") == "cool-post"
    assert utils.strip_date_prefix("cool-post") == "cool-post"


def test_template_suffixes_and_content_files():
    assert utils.strip_template_suffix("post.html") == "post"
    assert utils.strip_template_suffix("post.html.jinja") == "post"
    assert utils.strip_template_suffix("nested/page.jinja") == "nested/page"
    assert utils.strip_template_suffix("notes.txt") is None

    assert utils.is_content_file(Path("2024-01-01-post.md"))
    assert utils.is_content_file(Path("post.markdown"))
    assert utils.is_content_file(Path("post.html"))
    assert not utils.is_content_file(Path("_draft.md"))
    assert not utils.is_content_file(Path(".hidden.md"))
    assert not utils.is_content_file(Path("script.py"))


def test_urls_and_output_paths():
    assert utils.join_root_url("https://example.com/", "about") == "https://example.com/about"
    assert utils.join_root_url("", "/about") == "/about"
    assert utils.url_to_output_path("/").as_posix() == "index.html"
    assert utils.url_to_output_path("/page2/").as_posix() == "page2/index.html"
    assert utils.url_to_output_path("/blog/post.html").as_posix() == "blog/post.html"


def test_normalize_url():
    assert utils.normalize_url("blog//post") == "/blog/post"
    assert utils.normalize_url("/blog/./drafts/../post.html") == "/blog/post.html"
    assert utils.normalize_url("/a/b/../") == "/a/"
    assert utils.normalize_url("") == "/"
    with pytest.raises(ValueError):
        utils.normalize_url("/../../escaped/")
    with pytest.raises(ValueError):
        utils.url_to_output_path("/a/../../b/")


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "build"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert list(target.iterdir()) == []

    missing = tmp_path / "missing-dir"
    utils.ensure_clean_dir(missing)
    assert missing.exists()
