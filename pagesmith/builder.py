from __future__ import annotations

import functools
import shutil
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .config import SiteConfig
from .content import discover_pages, read_page, render_markdown
from .errors import PageBuildError, SiteError, WriteFailure
from .render import render_page
from .templates import TemplateStore, load_templates
from .utils import (
    clean_output_dir,
    copy_file,
    guard_output_dir,
    list_files,
    output_path_for_page,
    publish_output,
    relative_key,
    staging_dir,
    worker_count,
    write_text,
)

ASSETS_DIRNAME = "assets"


@dataclass
class BuildReport:
    pages: list[str] = field(default_factory=list)
    assets: int = 0
    elapsed: float = 0.0


def find_collisions(page_files: list[Path], pages_dir: Path) -> dict[str, list[str]]:
    targets: dict[str, list[str]] = {}
    for path in page_files:
        rel = relative_key(path, pages_dir)
        targets.setdefault(output_path_for_page(rel), []).append(rel)
    return {out: sources for out, sources in targets.items() if len(sources) > 1}


def build_page(
    path: Path,
    pages_dir: Path,
    output_dir: Path,
    store: TemplateStore,
    to_html: Callable[[str], str],
) -> str:
    source = relative_key(path, pages_dir)
    try:
        page = read_page(pages_dir, path)
        html_text = render_page(page.body, page.is_markdown, page.metadata, store, to_html=to_html)
        out = output_path_for_page(page.source)
        write_text(output_dir / out, html_text)
    except Exception as exc:
        raise PageBuildError(source, exc) from exc
    return out


def asset_targets(assets_dir: Path, dest_dir: Path) -> list[tuple[Path, Path]]:
    return [(path, dest_dir / relative_key(path, assets_dir)) for path in list_files(assets_dir)]


def build_site(config: SiteConfig) -> BuildReport:
    """Rebuild the whole output directory from the source tree.

    Pages and assets are written to a staging directory next to the output
    and swapped in only when everything succeeded, so a failed build leaves
    the previous output untouched. Raises a ``SiteError`` subclass when any
    template, page or asset fails.
    """
    start = time.perf_counter()
    workers = worker_count(config.build_workers)
    staging = staging_dir(config.output_dir)

    guard_output_dir(config.output_dir, config.project_root)
    clean_output_dir(staging, config.project_root)
    try:
        report = render_site(config, staging, workers)
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    publish_output(staging, config.output_dir, config.project_root)

    report.elapsed = time.perf_counter() - start
    return report


def render_site(config: SiteConfig, output_dir: Path, workers: int) -> BuildReport:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteFailure(output_dir, exc) from exc
    store = load_templates(config.layouts_dir, config.partials_dir, workers=workers)

    page_files = discover_pages(config.pages_dir)
    for out, sources in find_collisions(page_files, config.pages_dir).items():
        print(f"Warning: {', '.join(sources)} all map to {out}; the last one written wins.", file=sys.stderr)

    to_html = functools.partial(
        render_markdown, extensions=config.markdown_extensions, highlight=config.highlight_code
    )
    report = BuildReport()
    with ThreadPoolExecutor(max_workers=workers) as executor:
        asset_futures = [
            executor.submit(copy_file, src, dest)
            for src, dest in asset_targets(config.assets_dir, output_dir / ASSETS_DIRNAME)
        ]
        page_futures = [
            executor.submit(build_page, path, config.pages_dir, output_dir, store, to_html)
            for path in page_files
        ]
        try:
            for future in page_futures:
                report.pages.append(future.result())
            for future in asset_futures:
                future.result()
        except SiteError:
            for future in page_futures + asset_futures:
                future.cancel()
            raise
        report.assets = len(asset_futures)
    return report


def summarize(report: BuildReport) -> str:
    return (
        f"Build completed in {report.elapsed:.2f}s "
        f"({len(report.pages)} pages, {report.assets} assets)."
    )
