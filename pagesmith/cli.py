from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .builder import build_site, summarize
from .config import DEFAULT_CONFIG, load_site_config
from .devserver import run_dev
from .errors import ConfigError, SiteError


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help=f"Path to site config file (TOML/YAML/JSON). Defaults to {DEFAULT_CONFIG}.",
    )
    parser = argparse.ArgumentParser(
        prog="pagesmith", description="Build a static site from Markdown and HTML pages.", parents=[common]
    )
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="{build,dev}")
    subparsers.add_parser("build", parents=[common], help="Build the site once and exit.")
    subparsers.add_parser("dev", parents=[common], help="Build, serve and rebuild on change with live reload.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    config_path = Path(getattr(args, "config", DEFAULT_CONFIG))
    try:
        config = load_site_config(config_path)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1

    if args.command == "dev":
        return run_dev(config)

    print("Building...")
    try:
        report = build_site(config)
    except SiteError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    print(summarize(report))
    print(f"Site generated in: {config.output_dir}")
    return 0
