import dataclasses
from datetime import datetime
from pathlib import Path

import pytest

from inkpress.content import ContentLoader, FileContentLoader
from inkpress.errors import InvalidPermalinkError, MalformedContentError


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    write(site / "_layouts" / "default.html", "{{ content }}")
    write(site / "_includes" / "head.html", "<title>x</title>")
    write(
        site / "about.md",
        "---\nlayout: page\ntitle: About\npermalink: /about/\n---\nHello\n",
    )
    write(
        site / "_posts" / "2016-03-02-optionals-in-swift.md",
        "---\nlayout: post\nfeature-img: /img/optionals.png\ntags: [swift]\n---\n# Optionals in Swift\n\nBody\n",
    )
    write(site / "_drafts" / "core-data-subquery.md", "---\nlayout: post\n---\nDraft\n")
    write(site / "unpublished.md", "---\npublished: false\n---\nHidden\n")
    write(site / "404.html", "---\nlayout: default\n---\n<h1>Not found</h1>\n")
    write(site / "img" / "optionals.png", "png")
    write(site / "css" / "main.css", "body {}")
    write(site / ".hidden" / "notes.md", "# Hidden")
    write(site / "_notes.md", "# Partial")
    return site


def test_loader_discovers_content_and_static_files(tmp_path):
    site = create_site(tmp_path)
    loader = FileContentLoader(site)
    files = [p.relative_to(site).as_posix() for p in loader.iter_files()]
    assert files == [
        "404.html",
        "_posts/2016-03-02-optionals-in-swift.md",
        "about.md",
        "unpublished.md",
    ]
    with_drafts = [p.relative_to(site).as_posix() for p in loader.iter_files(include_drafts=True)]
    assert "_drafts/core-data-subquery.md" in with_drafts

    static = [p.relative_to(site).as_posix() for p in loader.iter_static_files()]
    assert static == ["css/main.css", "img/optionals.png"]


def test_loader_exclude_and_skip_dirs(tmp_path):
    site = create_site(tmp_path)
    write(site / "output" / "about" / "index.html", "built")
    loader = FileContentLoader(site, exclude=["css/*"], skip_dirs=[site / "output"])
    static = [p.relative_to(site).as_posix() for p in loader.iter_static_files()]
    assert static == ["img/optionals.png"]


def test_units_carry_metadata_and_kind(tmp_path):
    site = create_site(tmp_path)
    units, failures = ContentLoader(site).load()
    assert failures == []
    by_name = {u.rel_path.name: u for u in units}
    assert set(by_name) == {"404.html", "2016-03-02-optionals-in-swift.md", "about.md"}

    about = by_name["about.md"]
    assert about.kind == "page"
    assert about.layout == "page"
    assert about.title == "About"
    assert about.permalink == "/about/"
    assert about.body == "Hello\n"
    assert about.date is None

    post = by_name["2016-03-02-optionals-in-swift.md"]
    assert post.kind == "post"
    assert post.date == datetime(2016, 3, 2)
    assert post.title == "Optionals in Swift"
    assert post.slug == "optionals-in-swift"
    assert post.feature_img == "/img/optionals.png"
    assert post.tags == ["swift"]


def test_drafts_and_unpublished_units(tmp_path):
    site = create_site(tmp_path)
    units, _ = ContentLoader(site).load(include_drafts=True)
    drafts = {u.rel_path.as_posix() for u in units if u.draft}
    assert drafts == {"_drafts/core-data-subquery.md", "unpublished.md"}
    draft = next(u for u in units if u.kind == "draft")
    assert isinstance(draft.date, datetime)


def test_units_are_immutable(tmp_path):
    site = create_site(tmp_path)
    unit = ContentLoader(site).load_unit(site / "about.md")
    with pytest.raises(TypeError):
        unit.metadata["title"] = "Changed"
    with pytest.raises(dataclasses.FrozenInstanceError):
        unit.body = "Changed"


def test_title_fallbacks(tmp_path):
    site = tmp_path / "site"
    write(site / "heading.md", "Intro line\n\n# From Heading\n")
    write(site / "getting-started.md", "No heading here")
    loader = ContentLoader(site)
    assert loader.load_unit(site / "heading.md").title == "From Heading"
    assert loader.load_unit(site / "getting-started.md").title == "Getting Started"


def test_bad_units_fail_without_stopping_siblings(tmp_path):
    site = tmp_path / "site"
    write(site / "good.md", "---\ntitle: Good\n---\nFine\n")
    write(site / "unclosed.md", "---\ntitle: Broken\n\nNo closing delimiter\n")
    write(site / "_posts" / "undated.md", "---\ntitle: When?\n---\n")
    write(site / "escape.md", "---\npermalink: /../etc/passwd\n---\n")
    write(site / "baddate.md", "---\ndate: someday\n---\n")

    units, failures = ContentLoader(site).load()
    assert [u.rel_path.name for u in units] == ["good.md"]

    by_name = {f.source_path.name: f for f in failures}
    assert set(by_name) == {"unclosed.md", "undated.md", "escape.md", "baddate.md"}
    assert isinstance(by_name["unclosed.md"], MalformedContentError)
    assert isinstance(by_name["escape.md"], InvalidPermalinkError)
    assert "date" in by_name["undated.md"].message


def test_front_matter_date_overrides_filename(tmp_path):
    site = tmp_path / "site"
    path = write(site / "_posts" / "2016-01-01-reduce.md", "---\ndate: 2016-02-10 09:30:00\n---\n")
    unit = ContentLoader(site).load_unit(path)
    assert unit.date == datetime(2016, 2, 10, 9, 30)


def test_non_utf8_file_is_malformed(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    path = site / "latin1.md"
    path.write_bytes(b"caf\xe9")
    with pytest.raises(MalformedContentError):
        ContentLoader(site).load_unit(path)
