from datetime import datetime, timezone
from pathlib import Path

import yaml
from click.testing import CliRunner

from quire.cli import _get_existing_slugs, _render_post, cli


def make_site(runner: CliRunner, target: Path) -> Path:
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code == 0, result.output
    return target


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    config = yaml.safe_load((target / "quire.yaml").read_text(encoding="utf-8"))
    assert config["title"] == "Mysite"
    assert config["theme"] == "quire"
    assert (target / "_layouts").is_dir()
    assert (target / "_includes").is_dir()
    posts = list((target / "_posts").iterdir())
    assert len(posts) == 1
    assert posts[0].name.endswith("-welcome-to-quire.md")

    # fails on non-empty directory
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_cli_build_scaffolded_site(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    result = runner.invoke(cli, ["build", "--source", str(target)], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    assert "Built 2 pages into" in result.output
    assert "1 succeeded, 0 skipped" in result.output
    assert (target / "_site" / "index.html").exists()


def test_cli_build_output_and_workers(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    out = tmp_path / "public"
    result = runner.invoke(
        cli, ["build", "--source", str(target), "--output", str(out), "--workers", "2"]
    )
    assert result.exit_code == 0, result.output
    assert (out / "index.html").exists()
    assert not (target / "_site").exists()

    result = runner.invoke(cli, ["build", "--source", str(target), "--workers", "0"])
    assert result.exit_code != 0


def test_cli_build_reports_skipped_posts(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    (target / "_posts" / "2024-01-01-broken.md").write_text("no front-matter\n", encoding="utf-8")

    result = runner.invoke(cli, ["build", "--source", str(target)])
    assert result.exit_code == 0
    assert "1 succeeded, 1 skipped (ParseError: 1)" in result.output
    assert "2024-01-01-broken.md: [ParseError]" in result.output

    result = runner.invoke(cli, ["build", "--source", str(target), "--strict"])
    assert result.exit_code == 1


def test_cli_build_fatal_error(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "--source", str(tmp_path)])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "Resource: quire.yaml" in result.output
    assert "[ConfigError] configuration file not found" in result.output


def test_cli_build_cyclic_layouts(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    (target / "_layouts" / "post.html").write_text("---\nlayout: outer\n---\n{{ content }}", encoding="utf-8")
    (target / "_layouts" / "outer.html").write_text("---\nlayout: post\n---\n{{ content }}", encoding="utf-8")
    result = runner.invoke(cli, ["build", "--source", str(target)])
    assert result.exit_code == 1
    assert "[CyclicLayoutError] cyclic layout chain: outer -> post -> outer" in result.output


def test_module_main_entrypoint():
    from quire.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import quire.cli as cli_mod

    called = {}

    def fake_cli():
        called["ran"] = True

    monkeypatch.setattr(cli_mod, "cli", fake_cli)
    cli_mod.main()
    assert called["ran"]


class FakePrompt:
    def __init__(self, answer):
        self.answer = answer

    def ask(self):
        return self.answer


def test_post_command_no_config(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No quire.yaml found" in result.output


def test_post_command_creates_file(tmp_path, monkeypatch):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    monkeypatch.chdir(target)

    answers = iter(["Monads in Practice", "fp scala"])
    seen = {}

    def mock_text(message, **kwargs):
        return FakePrompt(next(answers))

    def mock_select(message, choices, **kwargs):
        seen["choices"] = choices
        seen["default"] = kwargs.get("default")
        return FakePrompt("post")

    monkeypatch.setattr("quire.cli.questionary.text", mock_text)
    monkeypatch.setattr("quire.cli.questionary.select", mock_select)

    result = runner.invoke(cli, ["post"])
    assert result.exit_code == 0, result.output
    assert seen["choices"] == ["default", "home", "post"]
    assert seen["default"] == "post"

    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    created = target / "_posts" / f"{today}-monads-in-practice.md"
    assert created.exists()
    text = created.read_text(encoding="utf-8")
    assert text.startswith("---\ntitle: Monads in Practice\n")
    assert "- fp\n- scala\n" in text

    # The new post builds cleanly.
    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 0, result.output
    assert "2 succeeded, 0 skipped" in result.output


def test_post_command_duplicate_detection(tmp_path, monkeypatch):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    monkeypatch.chdir(target)

    monkeypatch.setattr("quire.cli.questionary.text", lambda message, **kw: FakePrompt("Welcome to Quire"))
    monkeypatch.setattr("quire.cli.questionary.select", lambda message, choices, **kw: FakePrompt("post"))

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "A post with slug 'welcome-to-quire' already exists" in result.output


def test_post_command_cancelled(tmp_path, monkeypatch):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    monkeypatch.chdir(target)
    monkeypatch.setattr("quire.cli.questionary.text", lambda message, **kw: FakePrompt(None))

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert len(list((target / "_posts").iterdir())) == 1


def test_helpers(tmp_path):
    (tmp_path / "2024-01-01-hello-world.md").write_text("", encoding="utf-8")
    (tmp_path / "about.html").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")
    assert _get_existing_slugs(tmp_path) == {"hello-world", "about"}
    assert _get_existing_slugs(tmp_path / "missing") == set()
    assert _render_post({"title": "A", "tags": ["x"]}, "Body\n") == "---\ntitle: A\ntags:\n- x\n---\n\nBody\n"


def test_cli_build_listing_failure_fails_strict(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    with open(target / "quire.yaml", "a", encoding="utf-8") as f:
        f.write("paginate_layout: archive\n")

    result = runner.invoke(cli, ["build", "--source", str(target)])
    assert result.exit_code == 0
    assert "1 succeeded, 0 skipped" in result.output
    assert "<pagination>: [UnresolvedReferenceError] layout 'archive' not found" in result.output

    result = runner.invoke(cli, ["build", "--source", str(target), "--strict"])
    assert result.exit_code == 1


def test_cli_build_refuses_output_over_project(tmp_path):
    runner = CliRunner()
    target = make_site(runner, tmp_path / "mysite")
    result = runner.invoke(cli, ["build", "--source", str(target), "--output", str(tmp_path)])
    assert result.exit_code == 1
    assert "[ConfigError] output directory would overwrite" in result.output
    assert (target / "quire.yaml").exists()
