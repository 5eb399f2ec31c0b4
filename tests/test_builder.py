"""End-to-end build tests."""

from __future__ import annotations

import pytest

from pagesmith.builder import build_site, find_collisions, summarize
from pagesmith.content import discover_pages
from pagesmith.errors import MalformedMetadata, PageBuildError, WriteFailure


def test_build_renders_markdown_index(site) -> None:
    site.page("index.md", "# Hi")
    site.layout("default.html", "<html>{{content}}</html>")

    report = build_site(site.config)

    assert report.pages == ["index.html"]
    assert site.output("index.html") == "<html><h1>Hi</h1>\n</html>"


def test_build_uses_pretty_urls_and_metadata(site) -> None:
    site.layout("default.html", "<title>{{ title }}</title>{{ nav }}{{ content }}")
    site.layout("blog.html", "<article>{{ content }}</article>{{ footer }}")
    site.partial("nav.html", "<nav>{{ title }}</nav>")
    site.partial("footer.html", "<footer></footer>")
    site.page("about.html", "---\ntitle: About us\n---\n<p>About</p>")
    site.page("blog/post.md", "---\nlayout: blog\n---\nHello *there*")

    report = build_site(site.config)

    assert sorted(report.pages) == ["about/index.html", "blog/post/index.html"]
    assert site.output("about/index.html") == "<title>About us</title><nav>{{ title }}</nav><p>About</p>"
    assert site.output("blog/post/index.html") == (
        "<article><p>Hello <em>there</em></p>\n</article><footer></footer>"
    )


def test_build_missing_layout_fails_without_writing_page(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("blog/post.md", "---\nlayout: blog\n---\nbody")

    with pytest.raises(PageBuildError) as excinfo:
        build_site(site.config)

    message = str(excinfo.value)
    assert "blog/post.md" in message
    assert '"blog"' in message
    assert "layouts/blog.html" in message
    assert not (site.config.output_dir / "blog" / "post" / "index.html").exists()


def test_build_wraps_metadata_errors(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("broken.md", "---\ntitle: [oops\n---\nbody")

    with pytest.raises(PageBuildError) as excinfo:
        build_site(site.config)

    assert isinstance(excinfo.value.cause, MalformedMetadata)
    assert excinfo.value.source == "broken.md"


def test_build_copies_assets(site) -> None:
    site.layout("default.html", "{{content}}")
    site.asset("css/site.css", "body {}")
    site.asset("logo.svg", "<svg/>")

    report = build_site(site.config)

    assert report.assets == 2
    assert site.output("assets/css/site.css") == "body {}"
    assert site.output("assets/logo.svg") == "<svg/>"


def test_build_tolerates_missing_source_directories(site) -> None:
    report = build_site(site.config)

    assert report.pages == []
    assert report.assets == 0


def test_build_replaces_previous_output(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("index.html", "<p>home</p>")
    stale = site.config.output_dir / "old" / "index.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("stale", encoding="utf-8")

    build_site(site.config)

    assert not stale.exists()
    assert site.output("index.html") == "<p>home</p>"


def test_build_ignores_non_page_files(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("index.md", "hi")
    site.page("draft.txt", "not a page")

    report = build_site(site.config)

    assert report.pages == ["index.html"]


def test_build_refuses_output_at_project_root(site) -> None:
    site.config.output_dir = site.root

    with pytest.raises(WriteFailure):
        build_site(site.config)


def test_build_warns_on_colliding_outputs(site, capsys) -> None:
    site.layout("default.html", "{{content}}")
    site.page("foo.md", "md")
    site.page("foo.html", "html")

    build_site(site.config)

    err = capsys.readouterr().err
    assert "foo/index.html" in err
    assert (site.config.output_dir / "foo" / "index.html").exists()


def test_find_collisions_groups_sources(site) -> None:
    site.page("foo.md", "x")
    site.page("foo.html", "x")
    site.page("bar.md", "x")

    pages_dir = site.config.pages_dir
    collisions = find_collisions(discover_pages(pages_dir), pages_dir)

    assert collisions == {"foo/index.html": ["foo.html", "foo.md"]}


def test_summarize_reports_counts(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("index.md", "x")

    assert "1 pages, 0 assets" in summarize(build_site(site.config))


def test_failed_rebuild_keeps_previous_output(site) -> None:
    site.layout("default.html", "<main>{{content}}</main>")
    site.page("index.md", "# Home")
    build_site(site.config)
    site.page("index.md", "---\nlayout: blog\n---\n# Home")

    with pytest.raises(PageBuildError):
        build_site(site.config)

    assert site.output("index.html") == "<main><h1>Home</h1>\n</main>"
    assert not (site.root / "dist.tmp").exists()


def test_build_leaves_no_staging_directory(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("index.md", "x")
    (site.root / "dist.tmp" / "leftover").mkdir(parents=True)

    build_site(site.config)

    assert not (site.root / "dist.tmp").exists()
    assert not (site.config.output_dir / "leftover").exists()


def test_build_wraps_unexpected_converter_errors(site) -> None:
    site.layout("default.html", "{{content}}")
    site.page("index.md", "# Hi")
    site.config.markdown_extensions = ["no_such_extension_for_pagesmith"]

    with pytest.raises(PageBuildError) as excinfo:
        build_site(site.config)

    assert excinfo.value.source == "index.md"
    assert isinstance(excinfo.value.cause, ImportError)
