from pathlib import Path

import pytest

from quire.config import BUNDLED_THEME_DIR, SiteConfig, build_config, load_config
from quire.errors import ConfigError


def test_load_config_applies_defaults(tmp_path):
    (tmp_path / "quire.yaml").write_text(
        "title: Typed Errors\nurl: https://example.com/\npaginate: 3\nfavourite_colour: teal\n",
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.title == "Typed Errors"
    assert config.url == "https://example.com"
    assert config.paginate == 3
    assert config.paginate_layout == "home"
    assert config.permalink == "/:year/:month/:day/:title/"
    assert config.theme_dir == BUNDLED_THEME_DIR
    assert config.defaults["layout"] == "post"
    assert config.extra["favourite_colour"] == "teal"
    assert config.as_context()["favourite_colour"] == "teal"


def test_config_is_immutable(tmp_path):
    config = build_config({}, tmp_path)
    with pytest.raises(AttributeError):
        config.title = "changed"
    with pytest.raises(TypeError):
        config.defaults["layout"] = "other"


def test_missing_config_is_fatal(tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert "quire.yaml" in str(excinfo.value)


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "paginate: 0\n",
        "paginate: ten\n",
        "workers: -1\n",
        "paginate_path: /pages/\n",
        "paginate_path: /../page:num/\n",
        "permalink: /../../:title/\n",
        "defaults: [layout]\n",
        "title: [a, b]\n",
        "theme: does-not-exist\n",
        "title: [unclosed\n",
    ],
)
def test_invalid_config_raises(tmp_path, text):
    (tmp_path / "quire.yaml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_theme_can_be_disabled_or_local(tmp_path):
    assert build_config({"theme": None}, tmp_path).theme_dir is None
    (tmp_path / "mytheme").mkdir()
    config = build_config({"theme": "mytheme"}, tmp_path)
    assert config.theme_dir == (tmp_path / "mytheme").resolve()


def test_absolute_url_joins_url_and_baseurl():
    config = SiteConfig(url="https://example.com", baseurl="/blog")
    assert config.absolute_url("/2024/01/01/hello/") == "https://example.com/blog/2024/01/01/hello/"
    assert SiteConfig().absolute_url("/about/") == "/about/"


def test_baseurl_is_normalised(tmp_path):
    config = build_config({"baseurl": "blog/"}, tmp_path)
    assert config.baseurl == "/blog"
