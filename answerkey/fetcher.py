"""
Fetcher
=======
Downloads answer-key pages and proxies header images as data URIs.
No retries: a failed fetch ends the request.
"""

from __future__ import annotations

import base64
import logging
import re
import time

import requests
from bs4 import UnicodeDammit

from .errors import FetchTimeoutError, InputValidationError, UpstreamFetchError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; AnswerKeyScorer/1.0)"

DEFAULT_TIMEOUT = 15

CHUNK_SIZE = 64 * 1024

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def validate_url(url) -> str:
    """Trim and check the answer-key URL. Raises InputValidationError."""
    url = url.strip() if isinstance(url, str) else ""
    if not url:
        raise InputValidationError("Missing `url` in request body.")
    if not URL_PATTERN.match(url):
        raise InputValidationError("URL must start with http or https.")
    return url


def fetch_document(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> str:
    """
    GET the page and return its decoded HTML.

    `timeout` is a deadline for the whole download, not only for each
    socket read, so a server that trickles bytes is cut off too.

    Raises:
        FetchTimeoutError: Page not fully received within `timeout` seconds.
        UpstreamFetchError: Non-2xx answer (carrying the upstream status)
            or a transport failure (status 500).
    """
    logger.info(f"Fetching answer key: {url}")
    deadline = time.monotonic() + timeout
    try:
        response = requests.get(
            url,
            headers={"User-Agent": user_agent, "Cache-Control": "no-cache"},
            timeout=timeout,
            stream=True,
        )
    except requests.Timeout as e:
        raise FetchTimeoutError(f"Fetch timeout after {timeout}s") from e
    except requests.RequestException as e:
        raise UpstreamFetchError(f"Fetch failed: {e}") from e

    try:
        if not response.ok:
            raise UpstreamFetchError(
                f"Fetch failed with status {response.status_code}",
                status_code=response.status_code,
            )
        body = _read_body(response, deadline, timeout)
    finally:
        response.close()

    declared = []
    if "charset" in response.headers.get("Content-Type", "").lower() and response.encoding:
        declared.append(response.encoding)

    logger.info(f"Fetched {len(body)} bytes")
    return UnicodeDammit(body, declared, is_html=True).unicode_markup or ""


def _read_body(response, deadline: float, timeout: float) -> bytes:
    chunks = []
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise FetchTimeoutError(f"Fetch timeout after {timeout}s")
    except requests.Timeout as e:
        raise FetchTimeoutError(f"Fetch timeout after {timeout}s") from e
    except requests.RequestException as e:
        raise UpstreamFetchError(f"Fetch failed: {e}") from e
    return b"".join(chunks)


def fetch_image_data_uri(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Fetch an image server-side and return it as a base64 data URI."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise UpstreamFetchError("Proxy failed", status_code=502) from e

    if not response.ok:
        raise UpstreamFetchError(
            f"Fetch failed {response.status_code}", status_code=502
        )

    content_type = response.headers.get("Content-Type") or "image/jpeg"
    payload = base64.b64encode(response.content).decode("ascii")
    return f"data:{content_type};base64,{payload}"
