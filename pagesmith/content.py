from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Sequence

import markdown
import yaml

from .errors import MalformedMetadata, UnreadableSource
from .utils import PAGE_SUFFIXES, list_files, relative_key

FRONT_MATTER_DELIMITER = "---"
DEFAULT_EXTENSIONS = ("fenced_code", "tables")


@dataclass(frozen=True)
class PageDocument:
    """One content file, header already split from the body."""

    source: str
    is_markdown: bool
    metadata: Mapping[str, str] = field(default_factory=dict)
    body: str = ""


def metadata_value(value: object) -> str | None:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def parse_front_matter(raw: str, source: str = "<string>") -> tuple[dict[str, str], str]:
    text = raw.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != FRONT_MATTER_DELIMITER:
        return {}, text

    end = None
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n") == FRONT_MATTER_DELIMITER:
            end = i
            break
    if end is None:
        return {}, text

    try:
        data = yaml.safe_load("".join(lines[1:end]))
    except yaml.YAMLError as exc:
        raise MalformedMetadata(source, exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedMetadata(source, "header must be a mapping of key: value pairs")

    meta = {}
    for key, value in data.items():
        text_value = metadata_value(value)
        # Lists and mappings never take part in substitution.
        if text_value is not None:
            meta[str(key)] = text_value
    body = "".join(lines[end + 1 :])
    return meta, body


def render_markdown(
    text: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS, highlight: bool = False
) -> str:
    extension_list = list(extensions)
    extension_configs = {}
    if highlight and "codehilite" not in extension_list:
        extension_list.append("codehilite")
        extension_configs["codehilite"] = {"guess_lang": False}
    md = markdown.Markdown(extensions=extension_list, extension_configs=extension_configs)
    html = md.convert(text)
    if html and not html.endswith("\n"):
        html += "\n"
    return html


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UnreadableSource(path, exc) from exc


def is_page(path: Path) -> bool:
    return path.name.endswith(PAGE_SUFFIXES)


def discover_pages(pages_dir: Path) -> list[Path]:
    return [path for path in list_files(pages_dir) if is_page(path)]


def read_page(pages_dir: Path, path: Path) -> PageDocument:
    source = relative_key(path, pages_dir)
    raw_text = read_text(path)
    meta, body = parse_front_matter(raw_text, source)
    return PageDocument(
        source=source, is_markdown=path.name.endswith(".md"), metadata=MappingProxyType(meta), body=body
    )
