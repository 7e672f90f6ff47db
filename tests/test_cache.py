import json
import os

from quire.cache import TEMPLATES_KEY, BuildCache, newest_mtime, walk_files


def test_missing_file_is_empty_cache(tmp_path):
    cache = BuildCache(tmp_path / ".cache" / "cache.json").load()
    assert len(cache) == 0
    assert cache.get("index.md") is None


def test_flush_and_reload(tmp_path):
    path = tmp_path / ".cache" / "cache.json"
    cache = BuildCache(path)
    cache.put("test/test.md", 1500.5)
    cache.flush()

    assert json.loads(path.read_text(encoding="utf-8")) == {"test/test.md": {"lastModified": 1500.5}}
    assert not path.with_name("cache.json.tmp").exists()
    reloaded = BuildCache(path).load()
    assert reloaded.get("test/test.md") == 1500.5
    assert "test/test.md" in reloaded


def test_corrupt_file_is_empty_cache(tmp_path, capsys):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    cache = BuildCache(path).load()
    assert len(cache) == 0
    assert "Ignoring unreadable cache file" in capsys.readouterr().out


def test_malformed_entries_are_dropped(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"a.md": {"lastModified": 10}, "b.md": {"lastModified": "x"}, "c.md": 3}))
    cache = BuildCache(path).load()
    assert cache.get("a.md") == 10.0
    assert "b.md" not in cache
    assert "c.md" not in cache


def test_is_fresh_compares_against_cached_stamp(tmp_path):
    cache = BuildCache(tmp_path / "cache.json")
    assert not cache.is_fresh("a.md", 100)
    cache.put("a.md", 100)
    assert cache.is_fresh("a.md", 100)
    assert cache.is_fresh("a.md", 99)
    assert not cache.is_fresh("a.md", 101)


def test_check_templates_resets_on_change(tmp_path):
    layouts = tmp_path / "layouts"
    layouts.mkdir()
    layout = layouts / "default.html"
    layout.write_text("{{ body }}", encoding="utf-8")

    cache = BuildCache(tmp_path / "cache.json")
    assert cache.check_templates([layouts])
    cache.put("a.md", 1.0)
    assert not cache.check_templates([layouts])
    assert "a.md" in cache

    stat = layout.stat()
    os.utime(layout, (stat.st_atime + 10, stat.st_mtime + 10))
    assert cache.check_templates([layouts])
    assert "a.md" not in cache
    assert TEMPLATES_KEY in cache


def test_newest_mtime_ignores_missing_roots(tmp_path):
    assert newest_mtime([tmp_path / "nope"]) == 0.0


def test_walk_files_is_sorted_depth_first_and_skips_excluded(tmp_path, write_files):
    write_files(
        {
            "content/b.md": "",
            "content/a/z.md": "",
            "content/a/b/c.md": "",
            "content/_hidden/x.md": "",
            "content/dir_/x.md": "",
            "content/a/_x.md": "",
            "content/a/x_.md": "",
            "content/c.md": "",
        }
    )
    root = tmp_path / "content"
    uris = [path.relative_to(root).as_posix() for path in walk_files(root)]
    assert uris == ["b.md", "c.md", "a/z.md", "a/b/c.md"]


def test_walk_files_missing_root(tmp_path):
    assert list(walk_files(tmp_path / "missing")) == []
