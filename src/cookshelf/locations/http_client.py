"""Shared HTTP client utilities for the remote locations and upload.

Provides a thin wrapper around ``httpx.Client`` with standardised timeouts,
user-agent headers, and error handling. The Chef API location, the site
location and the uploader all go through this module so that HTTP
behaviour is consistent and testable (tests patch these functions).

Every transport failure raises ``DownloadFailure`` (or ``UploadFailure`` for
``put_bytes``). There is no retry policy: a failed request fails the
operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from cookshelf import __version__
from cookshelf.exceptions import DownloadFailure, UploadFailure

logger = logging.getLogger(__name__)

# Timeout for all HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = f"cookshelf/{__version__}"


def _client(
    *,
    headers: dict[str, str] | None,
    auth: tuple[str, str] | None,
    verify: bool,
    timeout: float,
) -> httpx.Client:
    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT, **(headers or {})},
        auth=auth,
        verify=verify,
        follow_redirects=True,
    )


def get_json(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    auth: tuple[str, str] | None = None,
    verify: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
    allow_missing: bool = False,
) -> Any:
    """Fetch a URL and parse the response as JSON.

    Args:
        url: The URL to fetch.
        headers: Extra request headers.
        auth: Optional (username, password) for HTTP basic auth.
        verify: Verify TLS certificates.
        timeout: Request timeout in seconds.
        allow_missing: Return None on HTTP 404 instead of raising.

    Returns:
        Parsed JSON response, or None for a tolerated 404.

    Raises:
        DownloadFailure: On HTTP errors, timeouts, or invalid JSON.
    """
    logger.debug("GET %s", url)
    try:
        with _client(headers=headers, auth=auth, verify=verify, timeout=timeout) as client:
            resp = client.get(url)
            if allow_missing and resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
    except httpx.TimeoutException as exc:
        raise DownloadFailure(f"Timeout fetching {url}") from exc
    except httpx.HTTPStatusError as exc:
        raise DownloadFailure(
            f"HTTP {exc.response.status_code} from {url}"
        ) from exc
    except (httpx.RequestError, ValueError) as exc:
        raise DownloadFailure(f"Request error for {url}: {exc}") from exc


def download(
    url: str,
    destination: Path,
    *,
    headers: dict[str, str] | None = None,
    auth: tuple[str, str] | None = None,
    verify: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
) -> Path:
    """Stream a URL to *destination*, creating parent directories.

    Raises:
        DownloadFailure: On HTTP or I/O errors.
    """
    logger.debug("Downloading %s -> %s", url, destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        with _client(headers=headers, auth=auth, verify=verify, timeout=timeout) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with destination.open("wb") as fh:
                    for chunk in resp.iter_bytes():
                        fh.write(chunk)
    except httpx.HTTPStatusError as exc:
        raise DownloadFailure(
            f"HTTP {exc.response.status_code} from {url}"
        ) from exc
    except (httpx.HTTPError, OSError) as exc:
        raise DownloadFailure(f"Failed to download {url}: {exc}") from exc
    return destination


def put_bytes(
    url: str,
    payload: bytes,
    *,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    auth: tuple[str, str] | None = None,
    verify: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """PUT a binary payload and return the response status code.

    Raises:
        UploadFailure: On any non-2xx response or transport error.
    """
    logger.debug("PUT %s (%d bytes)", url, len(payload))
    try:
        with _client(headers=headers, auth=auth, verify=verify, timeout=timeout) as client:
            resp = client.put(url, content=payload, params=params)
            resp.raise_for_status()
            return resp.status_code
    except httpx.HTTPStatusError as exc:
        raise UploadFailure(
            f"HTTP {exc.response.status_code} from {url}: {exc.response.text[:200]}"
        ) from exc
    except httpx.HTTPError as exc:
        raise UploadFailure(f"Request error for {url}: {exc}") from exc
