from pathlib import Path

import pytest

from quire.config import SiteConfig, load_config
from quire.errors import ConfigurationError
from quire.utils import clean_output_dir, is_excluded, parse_bool, parse_int


def test_missing_config_is_empty(tmp_path):
    assert load_config(tmp_path / "site.toml") == {}


def test_yaml_and_json_configs(tmp_path, write_files):
    write_files({"site.yml": "title: Yaml\nport: '8000'\n", "site.json": '{"title": "Json"}'})
    assert load_config(tmp_path / "site.yml") == {"title": "Yaml", "port": "8000"}
    assert load_config(tmp_path / "site.json") == {"title": "Json"}


def test_config_must_be_a_mapping(tmp_path, write_files):
    write_files({"site.yml": "- a\n- b\n"})
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_config(tmp_path / "site.yml")


def test_site_config_resolves_paths_against_its_directory(tmp_path, write_files):
    write_files(
        {
            "site.toml": """
                title = "Blog"
                output_dir = "public"
                port = "8080"
                content_classes = ["posts", "talks"]

                [layouts]
                talks = "talk.html"

                [uri_rewrites]
                old-name = "new-name"
            """
        }
    )
    config = SiteConfig.load(tmp_path / "site.toml")
    assert config.root_dir == tmp_path.resolve()
    assert config.content_dir == tmp_path.resolve() / "content"
    assert config.output_dir == tmp_path.resolve() / "public"
    assert config.port == 8080
    assert config.content_classes == ("posts", "talks")
    assert config.layout_for_class("talks") == "talk.html"
    assert config.layout_for_class(None) is None
    assert config.uri_rewrites == (("old-name", "new-name"),)


def test_rewrites_as_pairs():
    config = SiteConfig.from_mapping({"uri_rewrites": [["a", "b"]]}, Path("/site"))
    assert config.uri_rewrites == (("a", "b"),)
    with pytest.raises(ConfigurationError):
        SiteConfig.from_mapping({"uri_rewrites": [["a"]]}, Path("/site"))


@pytest.mark.parametrize(
    ("uri", "excluded"),
    [
        ("test/test.md", False),
        ("_x.md", True),
        ("x_.md", True),
        ("x_.tar.gz", True),
        ("dir_/a.md", True),
        ("_dir/a.md", True),
        ("a/b_c/d.md", False),
        (".well-known/x", False),
    ],
)
def test_is_excluded(uri, excluded):
    assert is_excluded(uri) is excluded


def test_parse_helpers():
    assert parse_bool("on") and parse_bool(1) and not parse_bool("off")
    assert parse_int("12", 3) == 12
    assert parse_int("nope", 3) == 3


def test_clean_refuses_dangerous_targets(tmp_path):
    with pytest.raises(ConfigurationError, match="project root"):
        clean_output_dir(tmp_path, tmp_path)
    outside = tmp_path / "outside"
    outside.mkdir()
    with pytest.raises(ConfigurationError, match="outside project root"):
        clean_output_dir(outside, tmp_path / "project")


def test_clean_removes_output(tmp_path):
    output = tmp_path / "build"
    (output / "a").mkdir(parents=True)
    clean_output_dir(output, tmp_path)
    assert not output.exists()
