"""Tests for pagesmith.templates."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pagesmith.errors import LayoutNotFound, UnreadableSource
from pagesmith.templates import TemplateStore, load_templates


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_load_templates_keys_layouts_and_partials(tmp_path: Path) -> None:
    layouts = tmp_path / "layouts"
    partials = tmp_path / "partials"
    _write(layouts / "default.html", "<html>{{ content }}</html>")
    _write(layouts / "docs" / "wide.html", "<main>{{ content }}</main>")
    _write(partials / "header.html", "<header></header>")
    _write(partials / "components" / "button.html", "<button></button>")
    _write(partials / "notes.txt", "ignored")

    store = load_templates(layouts, partials, workers=4)

    assert dict(store) == {
        "layouts/default": "<html>{{ content }}</html>",
        "layouts/docs/wide": "<main>{{ content }}</main>",
        "header": "<header></header>",
        "components/button": "<button></button>",
    }


def test_load_templates_tolerates_missing_directories(tmp_path: Path) -> None:
    store = load_templates(tmp_path / "layouts", tmp_path / "partials")

    assert len(store) == 0


def test_load_templates_single_worker_matches_parallel(tmp_path: Path) -> None:
    for index in range(6):
        _write(tmp_path / "partials" / f"p{index}.html", f"partial {index}")

    serial = load_templates(tmp_path / "layouts", tmp_path / "partials", workers=1)
    parallel = load_templates(tmp_path / "layouts", tmp_path / "partials", workers=8)

    assert dict(serial) == dict(parallel)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
def test_load_templates_propagates_read_errors(tmp_path: Path) -> None:
    partial = tmp_path / "partials" / "secret.html"
    _write(partial, "x")
    partial.chmod(0)
    try:
        with pytest.raises(UnreadableSource):
            load_templates(tmp_path / "layouts", tmp_path / "partials")
    finally:
        partial.chmod(0o644)


def test_load_templates_rejects_undecodable_file(tmp_path: Path) -> None:
    path = tmp_path / "partials" / "binary.html"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\xff\xfe\xfa")

    with pytest.raises(UnreadableSource):
        load_templates(tmp_path / "layouts", tmp_path / "partials")


def test_template_store_is_read_only() -> None:
    source = {"header": "<h1>"}
    store = TemplateStore(source)
    source["header"] = "changed"

    assert store["header"] == "<h1>"
    with pytest.raises(TypeError):
        store["header"] = "x"  # type: ignore[index]


def test_layout_lookup_names_expected_file(tmp_path: Path) -> None:
    store = TemplateStore({"layouts/default": "x"}, tmp_path / "layouts")

    assert store.layout("default") == "x"
    with pytest.raises(LayoutNotFound) as excinfo:
        store.layout("blog")

    assert excinfo.value.name == "blog"
    assert excinfo.value.expected_path == tmp_path / "layouts" / "blog.html"
    assert "blog.html" in str(excinfo.value)
