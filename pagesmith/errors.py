from __future__ import annotations

from pathlib import Path


class SiteError(Exception):
    """Base class for every failure that aborts a build."""


class ConfigError(SiteError):
    pass


class LayoutNotFound(SiteError):
    def __init__(self, name: str, expected_path: Path) -> None:
        self.name = name
        self.expected_path = expected_path
        super().__init__(f'Layout "{name}" not found. Create {expected_path.as_posix()}')


class UnreadableSource(SiteError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"Cannot read {path}: {reason}")


class WriteFailure(SiteError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"Cannot write {path}: {reason}")


class MalformedMetadata(SiteError):
    def __init__(self, source: str, reason: object) -> None:
        self.source = source
        super().__init__(f"Invalid metadata header in {source}: {reason}")


class PageBuildError(SiteError):
    def __init__(self, source: str, cause: Exception) -> None:
        self.source = source
        self.cause = cause
        super().__init__(f"Error building {source}: {cause}")
