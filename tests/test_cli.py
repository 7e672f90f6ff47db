import datetime as dt

import pytest

from quire.cli import build_parser, create_post, main
from quire.config import BuildOptions
from quire.content import split_frontmatter
from quire.errors import QuireError


@pytest.fixture
def config_file(tmp_path, write_files):
    write_files({"site.toml": 'title = "CLI Site"\nauthor = "Jane"\n'})
    return str(tmp_path / "site.toml")


def test_build_command(config_file, write_files, tmp_path, capsys):
    write_files({"content/test/test.md": "Bravo"})
    assert main(["build", "--config", config_file]) == 0
    html = (tmp_path / "build" / "test" / "index.html").read_text(encoding="utf-8")
    assert "<p>Bravo</p>" in html
    out = capsys.readouterr().out
    assert "Processing test/test.md..." in out
    assert "  -> Written to test/index.html" in out
    assert out.rstrip().endswith("Done.")


def test_build_with_failures_exits_nonzero(config_file, write_files, capsys):
    write_files({"content/bad/bad.md": "+++\nnope = 1\n+++\n"})
    assert main(["build", "--config", config_file]) == 1
    assert "1 file(s) failed" in capsys.readouterr().err


def test_configuration_error_exits_nonzero(config_file, write_files, capsys):
    write_files({"content/test/test.md": "", "content/test/x.html.page.py": ""})
    assert main(["build", "--config", config_file]) == 1
    assert "Error: Page logic module has no adjacent content file" in capsys.readouterr().err


def test_invalid_config_file(tmp_path, write_files, capsys):
    write_files({"site.toml": "title = \n"})
    assert main(["build", "--config", str(tmp_path / "site.toml")]) == 1
    assert "Invalid TOML in config file" in capsys.readouterr().err


def test_output_override(config_file, write_files, tmp_path):
    write_files({"content/index.md": "Home"})
    assert main(["build", "--config", config_file, "--output", str(tmp_path / "public")]) == 0
    assert (tmp_path / "public" / "index.html").is_file()


def test_check_command(config_file, write_files, tmp_path):
    write_files({"content/index.md": "Home"})
    assert main(["check", "--config", config_file]) == 0
    assert not (tmp_path / "build").exists()


def test_flags_default_from_config():
    parser = build_parser("site.toml", {"drafts": "yes", "cache": False})
    args = parser.parse_args(["build"])
    assert args.drafts is True
    assert args.cache is False
    args = parser.parse_args(["build", "--cache", "--no-drafts"])
    assert args.cache is True
    assert args.drafts is False


def test_no_cache_flag_maps_to_build_options():
    args = build_parser("site.toml", {}).parse_args(["watch", "--no-cache", "--verbose"])
    args.no_cache = not args.cache
    options = BuildOptions.from_args(args)
    assert options == BuildOptions(command="watch", verbose=True, no_cache=True)


def test_create_post(site):
    site.author = "Jane"
    path = create_post(site, "Hello World", now=dt.datetime(2020, 1, 2, 3, 4, 5, 678, tzinfo=dt.timezone.utc))
    assert path == site.content_dir / "posts" / "drafts" / "hello-world" / "hello-world.md"
    _, meta = split_frontmatter(path.read_text(encoding="utf-8"), path)
    assert meta["slug"] == "hello-world"
    assert meta["author"] == "Jane"
    assert meta["draft"] is True
    assert meta["date"] == dt.datetime(2020, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc)
    with pytest.raises(QuireError, match="already exists"):
        create_post(site, "hello-world")


def test_new_command_prompts_for_slug(config_file, tmp_path, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "First Post")
    assert main(["new", "--config", config_file]) == 0
    path = tmp_path / "content" / "posts" / "drafts" / "first-post" / "first-post.md"
    assert "author = 'Jane'" in path.read_text(encoding="utf-8")
