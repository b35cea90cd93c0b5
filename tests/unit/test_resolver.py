"""
Unit Tests for Asset Bundles and Resource Resolution
====================================================

Tests for key generation, lookup fallbacks and inlining of markup,
stylesheets and record values.
"""

import base64

import pytest
from bs4 import BeautifulSoup

from banner_batch.core.assets.bundle import (
    AssetBundle,
    guess_mime_type,
    key_forms,
    strip_relative_prefix,
)
from banner_batch.core.assets.resolver import (
    candidate_keys,
    looks_like_resource,
    resolve,
    resolve_markup,
    resolve_record,
    resolve_stylesheet,
)
from banner_batch.core.exceptions import ResourceUnresolved
from banner_batch.models.schemas import ArchiveEntry, BannerRecord, InlineResource


def _uri(content: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


class TestInlineResource:
    def test_data_uri(self):
        assert InlineResource(content=b"abc", mime_type="image/png").data_uri == "data:image/png;base64,YWJj"


class TestAssetBundle:
    """Test bundle construction and key forms."""

    def test_key_forms(self):
        """Test every equivalent key of a nested asset."""
        assert key_forms("banner/images/a.png", "banner") == [
            "banner/images/a.png",
            "./banner/images/a.png",
            "images/a.png",
            "./images/a.png",
            "a.png",
        ]

    def test_first_registration_wins(self):
        """Test that a shared bare filename points at the first asset."""
        bundle = AssetBundle.from_entries(
            [
                ArchiveEntry(path="a/x.png", content=b"first"),
                ArchiveEntry(path="b/x.png", content=b"second"),
            ]
        )

        assert bundle.get("x.png").content == b"first"
        assert bundle.get("b/x.png").content == b"second"
        assert len(bundle) == 2

    def test_empty_bundle_is_falsy(self):
        assert not AssetBundle()

    def test_from_directory(self, tmp_path):
        """Test that only images and fonts are bundled."""
        (tmp_path / "img").mkdir()
        (tmp_path / "img" / "a.png").write_bytes(b"a")
        (tmp_path / "font.woff2").write_bytes(b"f")
        (tmp_path / "notes.txt").write_text("skip")

        bundle = AssetBundle.from_directory(tmp_path)

        assert sorted(bundle.paths) == ["font.woff2", "img/a.png"]
        assert bundle.get("a.png").mime_type == "image/png"
        assert bundle.get("font.woff2").mime_type == "font/woff2"

    @pytest.mark.parametrize(
        "path,expected",
        [("./a.png", "a.png"), ("../../a.png", "a.png"), ("/abs/a.png", "abs/a.png"), ("./../x/a.png", "x/a.png")],
    )
    def test_strip_relative_prefix(self, path, expected):
        assert strip_relative_prefix(path) == expected

    def test_guess_mime_type(self):
        assert guess_mime_type("a.png") == "image/png"
        assert guess_mime_type("f.woff2") == "font/woff2"
        assert guess_mime_type("x.unknownext") == "application/octet-stream"


class TestResolve:
    """Test single reference resolution."""

    @pytest.fixture
    def bundle(self):
        return AssetBundle.from_entries(
            [
                ArchiveEntry(path="img/logo.png", content=b"logo"),
                ArchiveEntry(path="fonts/x.eot", content=b"eot"),
            ]
        )

    @pytest.mark.parametrize("reference", ["./img/logo.png", "img/logo.png", "logo.png", "../img/logo.png"])
    def test_equivalent_forms_resolve_to_same_payload(self, bundle, reference):
        """Test that every path form lands on the same payload."""
        assert resolve(reference, bundle) == _uri(b"logo")

    @pytest.mark.parametrize(
        "reference",
        ["data:image/png;base64,AAAA", "https://cdn.example.com/a.png", "http://x/a.png", "//cdn/a.png", "blob:abc"],
    )
    def test_passthrough(self, bundle, reference):
        """Test that inline and absolute references are never rewritten."""
        assert resolve(reference, bundle) == reference

    def test_unresolved_passes_through(self, bundle):
        assert resolve("missing.png", bundle) == "missing.png"

    def test_strict_raises(self, bundle):
        with pytest.raises(ResourceUnresolved) as exc_info:
            resolve("missing.png", bundle, strict=True)
        assert exc_info.value.reference == "missing.png"

    def test_query_suffix(self, bundle):
        """Test font URLs with query or fragment suffixes."""
        assert resolve("fonts/x.eot?#iefix", bundle) == _uri(b"eot", "application/vnd.ms-fontobject")

    def test_template_relative(self):
        """Test references relative to the template directory."""
        bundle = AssetBundle.from_entries(
            [ArchiveEntry(path="banner/images/a.png", content=b"a")], base_dir="banner"
        )

        assert resolve("images/a.png", bundle) == _uri(b"a")
        assert resolve("./images/a.png", bundle) == _uri(b"a")

    def test_candidate_order(self):
        assert candidate_keys("./a/b.png") == ["./a/b.png", "a/b.png", "b.png"]


class TestResolveDocuments:
    """Test markup and stylesheet inlining."""

    def test_stylesheet(self, asset_bundle):
        css = ".a { background: url('p1.png'); } .b { background: url(https://x/y.png); }"

        resolved = resolve_stylesheet(css, asset_bundle)

        assert f'url("{_uri(b"p1-bytes")}")' in resolved
        assert "url(https://x/y.png)" in resolved

    def test_markup(self, asset_bundle):
        """Test image sources, inline styles and style blocks."""
        document = BeautifulSoup(
            "<style>.x { background: url(./img/nested.png); }</style>"
            '<div style="background-image: url(p1.png)"><img src="./p1.png"><img src="gone.png"></div>',
            "html.parser",
        )

        count = resolve_markup(document, asset_bundle)

        assert count == 3
        assert document.find("img")["src"] == _uri(b"p1-bytes")
        assert document.find_all("img")[1]["src"] == "gone.png"
        assert _uri(b"nested-bytes") in document.find("style").string
        assert _uri(b"p1-bytes") in document.find("div")["style"]


class TestResolveRecord:
    """Test promotion of record values."""

    def test_paths_promoted(self, asset_bundle):
        record = BannerRecord(
            values={
                "title": "Hi",
                "product_main_src": "p1.png",
                "gallery": ["p1.png", "https://x/a.png"],
                "price": 5,
            }
        )

        resolved = resolve_record(record, asset_bundle)

        assert resolved.get("title") == "Hi"
        assert resolved.get("product_main_src") == _uri(b"p1-bytes")
        assert resolved.get("gallery") == [_uri(b"p1-bytes"), "https://x/a.png"]
        assert resolved.get("price") == 5
        assert record.get("product_main_src") == "p1.png"

    def test_empty_bundle_returns_record(self):
        record = BannerRecord(values={"a": "p1.png"})
        assert resolve_record(record, AssetBundle()) is record

    @pytest.mark.parametrize(
        "value,expected",
        [("p1.png", True), ("fonts/a.woff2", True), ("Hello world.png", False), ("title", False), ("data:x", False)],
    )
    def test_looks_like_resource(self, value, expected):
        assert looks_like_resource(value) is expected
