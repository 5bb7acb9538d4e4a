from datetime import date

import pytest

from inkpress.errors import MalformedContentError
from inkpress.frontmatter import load_metadata, parse_frontmatter, split_frontmatter

ABOUT = """---
layout: page
title: About
permalink: /about/
feature-img: "{{ site.url }}/img/about.jpg"
---
Hello, I write about **Swift**.
"""


def test_parse_recovers_declared_keys_and_body():
    metadata, body = parse_frontmatter(ABOUT)
    assert metadata == {
        "layout": "page",
        "title": "About",
        "permalink": "/about/",
        "feature-img": "{{ site.url }}/img/about.jpg",
    }
    assert body == "Hello, I write about **Swift**.\n"


def test_split_parts_rejoin_to_input():
    crlf = ABOUT.replace("\n", "\r\n")
    for text in (ABOUT, crlf, "---\n---\n", "---\ntitle: x\n...\nbody"):
        split = split_frontmatter(text)
        assert "".join(split) == text
        assert split.has_frontmatter


def test_crlf_and_dots_closing():
    metadata, body = parse_frontmatter("---\r\ntitle: Windows\r\n...\r\nBody\r\n")
    assert metadata == {"title": "Windows"}
    assert body == "Body\r\n"


def test_missing_frontmatter_keeps_whole_text():
    text = "# Just Markdown\n\n---\n\nA rule above."
    assert parse_frontmatter(text) == ({}, text)
    assert not split_frontmatter(text).has_frontmatter


def test_empty_block():
    assert parse_frontmatter("---\n---\nBody") == ({}, "Body")


def test_byte_order_mark_is_accepted():
    text = "\ufeff---\ntitle: BOM\n---\nBody"
    metadata, body = parse_frontmatter(text)
    assert metadata == {"title": "BOM"}
    assert body == "Body"
    assert "".join(split_frontmatter(text)) == text


def test_unclosed_block_is_malformed(tmp_path):
    path = tmp_path / "broken.md"
    with pytest.raises(MalformedContentError) as excinfo:
        parse_frontmatter("---\nlayout: post\ntitle: Never closed\n\nBody", path)
    assert excinfo.value.source_path == path
    assert "never closed" in excinfo.value.message


def test_duplicate_keys_are_malformed():
    with pytest.raises(MalformedContentError) as excinfo:
        parse_frontmatter("---\ntitle: One\ntitle: Two\n---\n")
    assert "duplicate key 'title'" in excinfo.value.message


def test_invalid_yaml_and_non_mapping():
    with pytest.raises(MalformedContentError):
        parse_frontmatter("---\ntitle: [unclosed\n---\n")
    with pytest.raises(MalformedContentError) as excinfo:
        parse_frontmatter("---\n- a\n- b\n---\n")
    assert "mapping" in excinfo.value.message


def test_well_known_keys_are_strings():
    metadata = load_metadata("title: 2016\nlayout:\ndate: 2016-03-02\ntags: [swift, ios]\n")
    assert metadata["title"] == "2016"
    assert "layout" not in metadata
    # Other keys keep their YAML types.
    assert metadata["date"] == date(2016, 3, 2)
    assert metadata["tags"] == ["swift", "ios"]

    with pytest.raises(MalformedContentError):
        load_metadata("permalink:\n  - /a/\n  - /b/\n")
