"""Normalize whatever an image export call returns into one canonical data URL.

Accepted shapes: data URL strings, bare base64 strings, http(s) URLs,
binary buffers, ``ImageBlob`` values, and wrapper objects (mappings or
attribute objects) that hold one of the above under a known field name,
either flat or one level down under ``body``.

``normalize`` never raises: ``None`` means "not an image, try the next source".
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from collections.abc import Mapping
from typing import Any, Callable, Iterator, Optional, Tuple, Union

import requests

from .models import ImageBlob

IMAGE_DATA_PREFIX = "data:image"
DEFAULT_MIME = "image/png"
DEFAULT_IMAGE_PREFIX = f"data:{DEFAULT_MIME};base64,"

CANDIDATE_FIELDS = (
    "data",
    "image",
    "imageData",
    "image_data",
    "base64Image",
    "base64_image",
    "base64",
    "value",
    "url",
)
NESTED_FIELD = "body"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")
_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<b64>;base64)?,(?P<payload>.*)$", re.DOTALL)

Fetcher = Callable[[str], Union[ImageBlob, bytes]]


class HttpImageFetcher:
    """Download image URLs found in export payloads."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        access_token: Union[str, Callable[[], Optional[str]], None] = None,
    ):
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.access_token = access_token

    def _bearer(self) -> Optional[str]:
        if callable(self.access_token):
            return self.access_token()
        return self.access_token

    def __call__(self, url: str) -> ImageBlob:
        headers = {}
        token = self._bearer()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        resp = self.session.get(url, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return ImageBlob(resp.content, resp.headers.get("Content-Type"))

    def close(self) -> None:
        if self._owns_session:
            self.session.close()


def is_http_url(value: str) -> bool:
    return bool(_URL_RE.match(value.strip()))


def normalize_image_string(raw: Any) -> Optional[str]:
    """Return ``raw`` as a data URL if it already is one or is a bare base64 blob."""
    value = str(raw or "").strip()
    if not value:
        return None

    if value.startswith(IMAGE_DATA_PREFIX):
        return value

    cleaned = re.sub(r"\s+", "", value)
    if not _BASE64_RE.match(cleaned):
        return None
    # Padding is optional on the way in and restored on the way out.
    unpadded = cleaned.rstrip("=")
    if not unpadded or "=" in unpadded or len(unpadded) % 4 == 1:
        return None
    padding = "=" * (-len(unpadded) % 4)
    return f"{DEFAULT_IMAGE_PREFIX}{unpadded}{padding}"


def _image_mime(content_type: Optional[str]) -> str:
    mime = str(content_type or "").split(";", 1)[0].strip().lower()
    return mime if mime.startswith("image/") else DEFAULT_MIME


def encode_binary(data: Any, content_type: Optional[str] = None) -> Optional[str]:
    if not _is_binary(data):
        return None
    raw = bytes(data)
    if not raw:
        return None
    encoded = base64.b64encode(raw).decode("ascii")
    return f"data:{_image_mime(content_type)};base64,{encoded}"


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a canonical image into ``(mime, bytes)``."""
    match = _DATA_URL_RE.match(data_url or "")
    if not match or not match.group("b64"):
        raise ValueError("Expected a base64 data URL")
    mime = match.group("mime") or DEFAULT_MIME
    try:
        payload = base64.b64decode(re.sub(r"\s+", "", match.group("payload")), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload in data URL: {exc}") from exc
    return mime, payload


def image_extension(mime: str) -> str:
    subtype = (mime or DEFAULT_MIME).split("/", 1)[-1].lower()
    if subtype == "jpeg":
        return "jpg"
    if subtype == "svg+xml":
        return "svg"
    return subtype or "png"


def _is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _candidates(raw: Any) -> Iterator[Any]:
    for name in CANDIDATE_FIELDS:
        yield _field(raw, name)
    body = _field(raw, NESTED_FIELD)
    if body is None or isinstance(body, str) or _is_binary(body):
        return
    for name in CANDIDATE_FIELDS:
        yield _field(body, name)


async def _fetch(url: str, fetcher: Optional[Fetcher]) -> Optional[str]:
    if fetcher is None:
        return None
    try:
        fetched = await asyncio.to_thread(fetcher, url)
    except Exception:
        return None
    if isinstance(fetched, ImageBlob):
        return encode_binary(fetched.data, fetched.content_type)
    if _is_binary(fetched):
        return encode_binary(fetched)
    return None


async def _normalize_leaf(value: Any, fetcher: Optional[Fetcher]) -> Optional[str]:
    if isinstance(value, str):
        if is_http_url(value):
            return await _fetch(value.strip(), fetcher)
        return normalize_image_string(value)
    if _is_binary(value):
        return encode_binary(value)
    if isinstance(value, ImageBlob):
        return encode_binary(value.data, value.content_type)
    return None


async def normalize(raw: Any, *, fetcher: Optional[Fetcher] = None) -> Optional[str]:
    """Convert an export result into a canonical data URL, or ``None`` if it holds no image."""
    if isinstance(raw, ImageBlob):
        return await _normalize_leaf(raw, fetcher)
    if not raw or isinstance(raw, (bool, int, float)):
        return None
    if isinstance(raw, str) or _is_binary(raw):
        return await _normalize_leaf(raw, fetcher)

    for candidate in _candidates(raw):
        if not candidate:
            continue
        result = await _normalize_leaf(candidate, fetcher)
        if result:
            return result
    return None
