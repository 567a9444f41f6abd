"""纯函数测试：slug、文件名清理、文件分类、隧道地址解析、品牌 CSS"""

from pathlib import Path

import pytest

from jcms.exceptions import StorageError
from jcms.infra.storage import classify_file, is_image_format, resolve_within, sanitize_filename
from jcms.infra.text import format_file_size, slugify
from jcms.infra.tunnel import clean_name, extract_tunnel_url, is_error_output
from jcms.services.branding import apply_update, effective_branding, render_css


class TestSlugify:

    def test_basic(self):
        assert slugify("Summer Gallery 2024!") == "summer-gallery-2024"

    def test_collapses_separators_and_accents(self):
        assert slugify("  Café -- Menu  ") == "cafe-menu"

    def test_empty_falls_back(self):
        assert slugify("!!!") == "item"

    def test_max_length(self):
        assert len(slugify("a" * 200, max_length=10)) == 10


def test_format_file_size():
    assert format_file_size(0) == "0 B"
    assert format_file_size(512) == "512 B"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(1024 * 1024) == "1 MB"


class TestFilenames:

    def test_sanitize_removes_traversal(self):
        cleaned = sanitize_filename("../../etc/passwd")
        assert "/" not in cleaned
        assert ".." not in cleaned

    def test_sanitize_rejects_empty(self):
        with pytest.raises(StorageError):
            sanitize_filename("")

    def test_resolve_within_blocks_escape(self, tmp_path: Path):
        assert resolve_within(tmp_path, "a", "b.txt") == (tmp_path / "a" / "b.txt").resolve()
        with pytest.raises(StorageError):
            resolve_within(tmp_path, "..", "outside.txt")

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("photo.PNG", ("image", "png")),
            ("report.pdf", ("document", "pdf")),
            ("sheet.xlsx", ("spreadsheet", "xlsx")),
            ("notes.md", ("text", "md")),
            ("clip.mp4", ("video", "mp4")),
            ("backup.zip", ("archive", "zip")),
            ("README", ("other", "bin")),
        ],
    )
    def test_classify(self, filename, expected):
        assert classify_file(filename) == expected

    def test_svg_is_image_type_but_not_raster(self):
        assert classify_file("logo.svg") == ("image", "svg")
        assert not is_image_format("svg")


class TestTunnelOutput:

    def test_extract_url(self):
        line = "2024-01-01 INF |  https://quiet-river-1234.trycloudflare.com  |"
        assert extract_tunnel_url(line) == "https://quiet-river-1234.trycloudflare.com"
        assert extract_tunnel_url("starting tunnel") is None

    def test_error_detection(self):
        assert is_error_output("ERR failed to connect to edge")
        assert not is_error_output("INF Registered https://x.trycloudflare.com")
        assert not is_error_output("")

    def test_clean_name(self):
        assert clean_name("My Photos!") == "my-photos"
        assert clean_name("***") == ""


class TestBranding:

    def test_update_merges_nested_groups(self):
        stored = apply_update({}, {"colors": {"primary": "#ff0000"}})
        merged = effective_branding(stored)
        assert merged["colors"]["primary"] == "#ff0000"
        assert merged["colors"]["secondary"] == "#64748b"

    def test_css_contains_variables_and_strips_unsafe_chars(self):
        css = render_css({"colors": {"primary": "red; } body { display:none"}})
        assert css.startswith(":root {")
        assert "--tenant-color-primary: red  body  display:none;" in css
        assert "--tenant-border-radius: 8px;" in css
