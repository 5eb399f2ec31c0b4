from __future__ import annotations

from collections.abc import Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from types import MappingProxyType
from typing import Optional

from .errors import LayoutNotFound, UnreadableSource
from .utils import list_files

TEMPLATE_SUFFIX = ".html"
LAYOUT_PREFIX = "layouts/"
DEFAULT_LAYOUT = "default"


class TemplateStore(Mapping):
    """Read-only snapshot of every layout and partial, built once per build.

    Layouts are keyed ``layouts/<name>``; partials by their path under the
    partials root, e.g. ``header`` or ``components/button``.
    """

    def __init__(self, templates: Mapping[str, str], layouts_dir: Path = Path("layouts")) -> None:
        self._templates = MappingProxyType(dict(templates))
        self.layouts_dir = layouts_dir

    def __getitem__(self, key: str) -> str:
        return self._templates[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def __repr__(self) -> str:
        return f"TemplateStore({sorted(self._templates)!r})"

    def layout(self, name: str) -> str:
        try:
            return self._templates[LAYOUT_PREFIX + name]
        except KeyError:
            raise LayoutNotFound(name, self.layouts_dir / f"{name}{TEMPLATE_SUFFIX}") from None


def template_key(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()[: -len(TEMPLATE_SUFFIX)]


def read_template(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        # Deleted between listing and reading.
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise UnreadableSource(path, exc) from exc


def template_files(root: Path, prefix: str) -> list[tuple[str, Path]]:
    return [
        (prefix + template_key(path, root), path)
        for path in list_files(root)
        if path.name.endswith(TEMPLATE_SUFFIX)
    ]


def load_templates(layouts_dir: Path, partials_dir: Path, workers: int = 1) -> TemplateStore:
    # Partials are registered after layouts so they win on a key clash.
    entries = template_files(layouts_dir, LAYOUT_PREFIX) + template_files(partials_dir, "")
    if workers > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(entries))) as executor:
            texts = list(executor.map(read_template, [path for _, path in entries]))
    else:
        texts = [read_template(path) for _, path in entries]

    templates = {}
    for (key, _), text in zip(entries, texts):
        if text is not None:
            templates[key] = text
    return TemplateStore(templates, layouts_dir)
