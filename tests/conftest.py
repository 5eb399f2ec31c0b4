from __future__ import annotations

from pathlib import Path

import pytest

from pagesmith.config import SiteConfig


class SiteTree:
    """Writes source files under a temporary project root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.config = SiteConfig.for_root(root, build_workers=4)

    def write(self, relative: str, text: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def page(self, relative: str, text: str) -> Path:
        return self.write(f"src/pages/{relative}", text)

    def layout(self, relative: str, text: str) -> Path:
        return self.write(f"src/layouts/{relative}", text)

    def partial(self, relative: str, text: str) -> Path:
        return self.write(f"src/partials/{relative}", text)

    def asset(self, relative: str, text: str) -> Path:
        return self.write(f"src/assets/{relative}", text)

    def output(self, relative: str) -> str:
        return (self.config.output_dir / relative).read_text(encoding="utf-8")


@pytest.fixture
def site(tmp_path: Path) -> SiteTree:
    """Provide an empty site tree rooted at the pytest tmp_path."""
    return SiteTree(tmp_path)
