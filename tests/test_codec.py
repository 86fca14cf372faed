import pytest

from traceit.core.codec import (
    decode_landing_content,
    decode_source_urls,
    decode_style,
    default_style,
    encode_json,
    encode_source_urls,
)
from traceit.core.schemas import QRCode


@pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]", "42", "null"])
def test_bad_style_falls_back_to_black_on_white(raw):
    style = decode_style(raw)
    assert style == {
        "fgColor": "#000000",
        "bgColor": "#ffffff",
        "logoImage": "",
        "eyeRadius": [0, 0, 0, 0],
        "labelText": "",
    }


def test_default_style_is_a_fresh_copy():
    style = default_style()
    style["eyeRadius"][0] = 9
    assert default_style()["eyeRadius"] == [0, 0, 0, 0]


@pytest.mark.parametrize("raw", [None, "oops", '"just a string"'])
def test_bad_landing_content_falls_back_to_empty_page(raw):
    assert decode_landing_content(raw) == {
        "title": "",
        "description": "",
        "image": "",
        "links": [],
        "theme": {},
    }


def test_encode_json_passes_strings_and_none_through():
    assert encode_json(None) is None
    assert encode_json('{"a": 1}') == '{"a": 1}'
    assert encode_json({"labelText": "Café"}) == '{"labelText": "Café"}'


@pytest.mark.parametrize("raw,expected", [
    (None, []),
    ("", []),
    ("https://example.com", ["https://example.com"]),
    ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
    ('{"url": "x"}', ['{"url": "x"}']),
])
def test_decode_source_urls(raw, expected):
    assert decode_source_urls(raw) == expected


def test_encode_source_urls_keeps_single_url_verbatim():
    assert encode_source_urls("https://example.com") == "https://example.com"
    assert encode_source_urls(["https://a.example"]) == '["https://a.example"]'
    assert encode_source_urls(None) is None


def test_record_with_malformed_blobs_still_loads():
    record = QRCode.from_row({
        "id": "abc123",
        "type": "landing",
        "title": "T",
        "destination_url": None,
        "landing_content": "{broken",
        "folder": "General",
        "custom_domain": None,
        "organization": None,
        "content_category": None,
        "verification_hash": None,
        "style": "not json",
        "created_at": "2026-10-19 10:00:00.000000",
        "scans": 3,
    })
    assert record.style["fgColor"] == "#000000"
    assert record.landing_content["links"] == []
    assert record.scans == 3


def test_resolved_style_for_absent_style():
    record = QRCode(id="abc123", type="link", title="T", created_at="2026-10-19 10:00:00")
    assert record.style is None
    assert record.resolved_style()["bgColor"] == "#ffffff"
