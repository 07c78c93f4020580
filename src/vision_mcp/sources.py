"""Image source resolution: local paths and http(s) URLs.

Validation is two-phase.  :func:`validate_image_source` is cheap and
syntactic (existence, size, extension for files; scheme for URLs).  Content
checks for remote images (status, content type, size) only happen when the
bytes are actually downloaded in :func:`download_image`.
"""
from __future__ import annotations

import base64
import logging
import os
import urllib.parse
from dataclasses import dataclass
from typing import Any, Union

import httpx

from .errors import ImageNotFoundError, ValidationError

log = logging.getLogger(__name__)

_MB = 1024 * 1024

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png")

# Downloaded images have their own fixed ceiling; the caller's max_size_mb
# only gates local files.
MAX_DOWNLOAD_MB = 20

DOWNLOAD_TIMEOUT = 30.0

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
}


@dataclass(frozen=True)
class UrlImage:
    url: str

    def to_content_block(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


@dataclass(frozen=True)
class InlineImage:
    mime_type: str
    base64_data: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"

    def to_content_block(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.data_url}}


ResolvedImage = Union[UrlImage, InlineImage]


def is_url(source: str) -> bool:
    try:
        parsed = urllib.parse.urlparse(source)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def mime_type_for(extension: str) -> str:
    return _MIME_TYPES.get(extension.lower().lstrip("."), "image/png")


def _size_mb(num_bytes: int) -> float:
    return num_bytes / _MB


def validate_image_source(source: str, max_size_mb: float = 20) -> None:
    # Anything that is not an http(s) URL is treated as a local path, so an
    # ftp:// or file:// string ends up as ImageNotFoundError below.
    if is_url(source):
        return

    if not os.path.exists(source):
        raise ImageNotFoundError(source)

    size = os.path.getsize(source)
    if size > max_size_mb * _MB:
        raise ValidationError(
            f"Image file too large: {_size_mb(size):.2f}MB. Maximum allowed: {max_size_mb}MB",
            details={"size_mb": round(_size_mb(size), 2), "max_size_mb": max_size_mb},
        )

    ext = os.path.splitext(source)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported image format: {ext or '(none)'}. "
            f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )


def encode_local_image(path: str) -> InlineImage:
    with open(path, "rb") as fh:
        data = fh.read()
    mime = mime_type_for(os.path.splitext(path)[1])
    log.debug("Encoded image to base64", extra={"image_source": path, "mime_type": mime})
    return InlineImage(mime_type=mime, base64_data=base64.standard_b64encode(data).decode("ascii"))


def _check_download_headers(response: httpx.Response) -> str:
    """Reject a download from its status line and headers, before the body."""
    if not response.is_success:
        raise ValidationError(
            f"Failed to download image: HTTP {response.status_code} {response.reason_phrase}",
            details={"status_code": response.status_code},
        )

    content_type = response.headers.get("content-type")
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError(f"Invalid content type: {content_type}. Expected image/*")

    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and _size_mb(int(declared)) > MAX_DOWNLOAD_MB:
        raise ValidationError(
            f"Downloaded image too large: {_size_mb(int(declared)):.2f}MB. "
            f"Maximum allowed: {MAX_DOWNLOAD_MB}MB",
            details={"size_mb": round(_size_mb(int(declared)), 2), "max_size_mb": MAX_DOWNLOAD_MB},
        )
    return content_type


async def download_image(
    url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> InlineImage:
    log.debug("Downloading image from URL", extra={"image_url": url})
    limit = MAX_DOWNLOAD_MB * _MB
    chunks: list[bytes] = []
    try:
        async with httpx.AsyncClient(
            timeout=DOWNLOAD_TIMEOUT, follow_redirects=True, transport=transport
        ) as client:
            async with client.stream("GET", url) as response:
                content_type = _check_download_headers(response)
                # Headers can be missing or wrong, so the running total is
                # enforced as well.
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise ValidationError(
                            f"Downloaded image too large: exceeded {MAX_DOWNLOAD_MB}MB "
                            f"after {_size_mb(received):.2f}MB. "
                            f"Maximum allowed: {MAX_DOWNLOAD_MB}MB",
                            details={"url": url, "max_size_mb": MAX_DOWNLOAD_MB},
                        )
                    chunks.append(chunk)
    except httpx.HTTPError as exc:
        raise ValidationError(
            f"Failed to download image from URL: {url}. Error: {exc}",
            details={"url": url},
        ) from exc

    body = b"".join(chunks)
    mime = content_type.split(";", 1)[0].strip()
    log.debug(
        "Downloaded and encoded image",
        extra={"image_url": url, "content_type": mime, "size_mb": round(_size_mb(len(body)), 2)},
    )
    return InlineImage(mime_type=mime, base64_data=base64.standard_b64encode(body).decode("ascii"))


async def resolve(
    source: str,
    max_size_mb: float = 20,
    *,
    inline_remote: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ResolvedImage:
    """Validate *source* and turn it into something a chat message can carry.

    Local files are always inlined as base64.  URLs are downloaded and
    inlined when *inline_remote* is true, otherwise passed through for the
    model provider to fetch.
    """
    validate_image_source(source, max_size_mb)
    if is_url(source):
        if inline_remote:
            return await download_image(source, transport=transport)
        return UrlImage(url=source)
    return encode_local_image(source)
