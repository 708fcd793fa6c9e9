"""
Tests for Markdown image reference scanning.

Run with: pytest tests/test_references.py -v
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.references import extract_image_references, find_orphaned_images, normalize_reference


class TestNormalizeReference:
    """Tests for reference normalization."""

    def test_strips_dot_slash_and_query(self):
        assert normalize_reference("./images/a.png?raw=1#top") == "images/a.png"

    def test_backslashes(self):
        assert normalize_reference("images\\a.png") == "images/a.png"

    def test_leading_slash(self):
        assert normalize_reference("/images/a.png") == "images/a.png"


class TestExtractImageReferences:
    """Tests for collecting image targets from Markdown."""

    def test_markdown_and_html(self):
        text = (
            "# Title\n"
            "![diagram](images/diagram.png)\n"
            '![logo](./images/logo.svg "Company logo")\n'
            '<img src="images/photo.jpg" width="200">\n'
        )
        assert extract_image_references(text) == {
            "images/diagram.png",
            "images/logo.svg",
            "images/photo.jpg",
        }

    def test_remote_and_data_urls_ignored(self):
        text = (
            "![a](https://example.com/a.png)\n"
            "![b](http://example.com/b.png)\n"
            "![c](data:image/png;base64,AAAA)\n"
        )
        assert extract_image_references(text) == set()

    def test_plain_links_ignored(self):
        assert extract_image_references("[not an image](images/a.png)") == set()


class TestFindOrphanedImages:
    """Tests for unreferenced image detection."""

    def test_all_referenced(self):
        refs = {"images/a.png", "b.png"}
        assert find_orphaned_images(refs, ["images/a.png", "images/b.png"]) == []

    def test_orphans_in_input_order(self):
        refs = {"images/a.png"}
        images = ["images/z.png", "images/a.png", "images/c.gif"]
        assert find_orphaned_images(refs, images) == ["images/z.png", "images/c.gif"]

    def test_case_insensitive(self):
        assert find_orphaned_images({"Images/Pic.PNG"}, ["images/pic.png"]) == []

    def test_no_references(self):
        assert find_orphaned_images(set(), ["images/a.png"]) == ["images/a.png"]
