"""Exception hierarchy shared by the build pipeline.

``PageError`` subclasses are scoped to a single content file: the scheduler
logs them and moves on to the next queued file. ``ConfigurationError``
subclasses describe a broken project layout and abort the run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


class QuireError(Exception):
    """Base for all quire errors."""


class ConfigurationError(QuireError):
    """Raised when the site configuration or project layout is invalid."""


class OrphanedLogicModuleError(ConfigurationError):
    def __init__(self, path: PathLike, hint: str = "") -> None:
        self.path = Path(path)
        message = f"Page logic module has no adjacent content file: {self.path}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class PageError(QuireError):
    """An error confined to one content file."""

    def __init__(self, message: str, path: PathLike) -> None:
        self.path = Path(path)
        super().__init__(message)


class NoEntrypointError(PageError):
    def __init__(self, path: PathLike) -> None:
        super().__init__(f"No entrypoint found for file: {path}", path)


class FrontmatterError(PageError):
    pass


class MissingRequiredFieldError(FrontmatterError):
    def __init__(self, field: str, path: PathLike) -> None:
        self.field = field
        super().__init__(f'Missing required frontmatter property of "{field}" in file: {path}', path)


class UnknownFieldError(FrontmatterError):
    def __init__(self, field: str, path: PathLike) -> None:
        self.field = field
        super().__init__(f'Invalid frontmatter property of "{field}" in file: {path}', path)


class RenderError(PageError):
    pass


class PageLogicError(PageError):
    pass


class SourceDecodeError(PageError):
    def __init__(self, path: PathLike) -> None:
        super().__init__(f"Content file is not valid UTF-8: {path}", path)
