from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath

from .errors import WriteFailure

PAGE_SUFFIXES = (".md", ".html")
MAX_WORKERS = 32


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def worker_count(requested: int) -> int:
    if requested <= 0:
        requested = os.cpu_count() or 1
    return max(1, min(requested, MAX_WORKERS))


def strip_page_suffix(name: str) -> str:
    for suffix in PAGE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def output_path_for_page(relative_path: str) -> str:
    """Map a page source path to its pretty-URL output path.

    ``index.md`` -> ``index.html``, ``about.md`` -> ``about/index.html``,
    ``blog/post.html`` -> ``blog/post/index.html``. Backslashes are treated
    as separators so Windows-style inputs map to URL paths.
    """
    source = PurePosixPath(relative_path.replace("\\", "/"))
    base = strip_page_suffix(source.name)
    if base == "index":
        output = source.parent / "index.html"
    else:
        output = source.parent / base / "index.html"
    return output.as_posix()


def list_files(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted((path for path in root.rglob("*") if path.is_file()), key=lambda p: p.as_posix())


def relative_key(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise WriteFailure(path, exc) from exc


def copy_file(src: Path, dest: Path) -> None:
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
    except OSError as exc:
        # Removed between listing and copying.
        if isinstance(exc, FileNotFoundError) and not src.exists():
            return
        raise WriteFailure(dest, exc) from exc


def guard_output_dir(output_dir: Path, project_root: Path) -> None:
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise WriteFailure(output_dir, "refusing to clean project root")
    if not output_resolved.is_relative_to(root_resolved):
        raise WriteFailure(output_dir, "refusing to clean output directory outside project root")


def staging_dir(output_dir: Path) -> Path:
    return output_dir.with_name(output_dir.name + ".tmp")


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    guard_output_dir(output_dir, project_root)
    if not output_dir.exists():
        return
    try:
        shutil.rmtree(output_dir)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise WriteFailure(output_dir, exc) from exc


def publish_output(staging: Path, output_dir: Path, project_root: Path) -> None:
    clean_output_dir(output_dir, project_root)
    try:
        os.replace(staging, output_dir)
    except OSError as exc:
        raise WriteFailure(output_dir, exc) from exc
