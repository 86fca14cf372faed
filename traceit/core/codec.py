"""
Structured blobs (style, landing content, source URL lists) are stored as
JSON text. Decoders never raise: bad or missing input yields a default.
"""
import copy
import json
from typing import Any

from .logging import logger

DEFAULT_STYLE = {
    "fgColor": "#000000",
    "bgColor": "#ffffff",
    "logoImage": "",
    "eyeRadius": [0, 0, 0, 0],  # top-left, top-right, bottom-right, bottom-left
    "labelText": "",
}

BULK_STYLE = {
    "fgColor": "#000000",
    "bgColor": "#ffffff",
    "logoImage": "/logo.png",
    "eyeRadius": [0, 0, 0, 0],
    "labelText": "Trace-it",
}

DEFAULT_LANDING_CONTENT = {
    "title": "",
    "description": "",
    "image": "",
    "links": [],
    "theme": {},
}


def default_style() -> dict:
    return copy.deepcopy(DEFAULT_STYLE)


def default_landing_content() -> dict:
    return copy.deepcopy(DEFAULT_LANDING_CONTENT)


def encode_json(value: Any) -> str | None:
    """
    Encode a structured value for a text column.
    Strings are assumed to be encoded already and pass through.
    """
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _loads(raw: str | None, expected: type):
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Could not decode stored value: {str(raw)[:60]!r}")
        return None
    if not isinstance(value, expected):
        logger.warning(f"Stored value is not a {expected.__name__}: {str(raw)[:60]!r}")
        return None
    return value


def decode_style(raw: str | None) -> dict:
    value = _loads(raw, dict)
    return value if value is not None else default_style()


def decode_landing_content(raw: str | None) -> dict:
    value = _loads(raw, dict)
    return value if value is not None else default_landing_content()


def encode_source_urls(urls: list[str] | str | None) -> str | None:
    if urls is None or isinstance(urls, str):
        return urls
    return json.dumps(list(urls), ensure_ascii=False)


def decode_source_urls(raw: str | None) -> list[str]:
    """
    destination_url holds either one URL or a JSON array of URLs.
    """
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return [raw]
    if isinstance(value, list):
        return [str(u) for u in value]
    return [raw]
