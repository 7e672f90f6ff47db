import sys
import textwrap
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path for absolute imports.
REPO_ROOT = Path(__file__).resolve().parents[1]
repo_root_str = str(REPO_ROOT)
if repo_root_str not in sys.path:
    sys.path.insert(0, repo_root_str)

from quire.config import BuildOptions, SiteConfig  # noqa: E402
from quire.context import BuildContext  # noqa: E402


@pytest.fixture
def site(tmp_path: Path) -> SiteConfig:
    return SiteConfig.for_root(tmp_path)


@pytest.fixture
def write_files(tmp_path: Path):
    def write(files: dict, root: Path = tmp_path) -> None:
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")

    return write


@pytest.fixture
def make_ctx(site: SiteConfig):
    def make(**options) -> BuildContext:
        return BuildContext.create(site, BuildOptions(**options))

    return make
