from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import markdown
import yaml

from .content import DEFAULT_EXTENSIONS
from .errors import ConfigError
from .utils import parse_bool, parse_int

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

DEFAULT_CONFIG = "site.toml"
DEFAULT_PORT = 8000
DEFAULT_DEBOUNCE_MS = 120


@dataclass
class SiteConfig:
    project_root: Path
    source_dir: Path
    pages_dir: Path
    layouts_dir: Path
    partials_dir: Path
    assets_dir: Path
    output_dir: Path
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    debounce: float = DEFAULT_DEBOUNCE_MS / 1000
    build_workers: int = 0
    markdown_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    highlight_code: bool = False

    @classmethod
    def for_root(cls, root: Path, **overrides: object) -> "SiteConfig":
        root = root.resolve()
        source = root / "src"
        values = {
            "project_root": root,
            "source_dir": source,
            "pages_dir": source / "pages",
            "layouts_dir": source / "layouts",
            "partials_dir": source / "partials",
            "assets_dir": source / "assets",
            "output_dir": root / "dist",
        }
        values.update(overrides)
        return cls(**values)


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if suffix == ".toml":
        if toml is None:
            raise ConfigError("TOML config requires tomllib (Python 3.11+) or tomli.")
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def load_site_config(path: Path) -> SiteConfig:
    config = load_config(path)
    root = path.resolve().parent

    def cfg_path(key: str, default: Path) -> Path:
        value = config.get(key)
        if value is None or str(value).strip() == "":
            return default
        candidate = Path(str(value))
        return candidate if candidate.is_absolute() else root / candidate

    def cfg_int(key: str, default: int) -> int:
        value = config.get(key)
        if value is None:
            return default
        parsed = parse_int(value, -1)
        if parsed < 0:
            raise ConfigError(f"Config value {key!r} must be a non-negative integer, got {value!r}")
        return parsed

    source = cfg_path("source", root / "src")
    extensions = config.get("markdown_extensions", list(DEFAULT_EXTENSIONS))
    if isinstance(extensions, str):
        extensions = [item.strip() for item in extensions.split(",") if item.strip()]
    if not isinstance(extensions, list):
        raise ConfigError("Config value 'markdown_extensions' must be a list of extension names")
    extensions = [str(item) for item in extensions]
    try:
        markdown.Markdown(extensions=extensions)
    except (ImportError, AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid markdown_extensions: {exc}") from exc

    port = cfg_int("port", DEFAULT_PORT)
    if port > 65535:
        raise ConfigError(f"Config value 'port' is out of range: {port}")

    return SiteConfig(
        project_root=root,
        source_dir=source,
        pages_dir=cfg_path("pages", source / "pages"),
        layouts_dir=cfg_path("layouts", source / "layouts"),
        partials_dir=cfg_path("partials", source / "partials"),
        assets_dir=cfg_path("assets", source / "assets"),
        output_dir=cfg_path("output", root / "dist"),
        host=str(config.get("host") or "127.0.0.1"),
        port=port,
        debounce=cfg_int("debounce_ms", DEFAULT_DEBOUNCE_MS) / 1000,
        build_workers=cfg_int("build_workers", 0),
        markdown_extensions=extensions,
        highlight_code=parse_bool(config.get("highlight_code", False)),
    )
