"""
Media Fetcher
=============

Retrieves raw media bytes for an original asset or a candidate URL.

This fetcher:
    - Downloads http(s) URLs with requests (per-call timeout), streaming
      the body and stopping as soon as it exceeds max_bytes
    - Retries timeouts and connection errors with exponential backoff
    - Reads file:// URIs and plain local paths
    - Returns Unavailable for deleted, blocked or oversized media
    - Raises RateLimitedError on HTTP 429 so the job layer can back off

Design Rules:
    - Never returns empty bytes as a success
    - "Could not fetch" is an Unavailable value, not an exception
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Union
from urllib.parse import unquote, urlparse

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from copyright_matcher.errors import RateLimitedError
from copyright_matcher.models.match import Unavailable


logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class MediaBlob:
    """Raw media bytes with their origin."""

    ref: str
    content: bytes = field(repr=False)
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class MediaFetcher(Protocol):
    """
    Protocol for media access.

    Implementations return the media bytes or an Unavailable outcome.
    """

    def fetch_media(self, ref: str) -> Union[MediaBlob, Unavailable]:
        ...


class HttpMediaFetcher:
    """
    Fetches media over HTTP(S) or from the local filesystem.

    Attributes:
        timeout_seconds: Timeout applied to each HTTP request
        max_attempts: Attempts for timeouts/connection errors
        max_bytes: Largest accepted payload

    Example:
        fetcher = HttpMediaFetcher(timeout_seconds=30)
        media = fetcher.fetch_media("https://cdn.example.com/clip.mp4")
        if isinstance(media, Unavailable):
            print(media.reason)
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        max_bytes: int = 200 * 1024 * 1024,
        user_agent: str = "copyright-matcher/0.1",
        backoff_multiplier: float = 1.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self.backoff_multiplier = backoff_multiplier
        self._session = session or requests.Session()

        self._fetch_count: int = 0
        self._unavailable_count: int = 0

        logger.info(
            f"HttpMediaFetcher initialized: timeout={timeout_seconds}s, "
            f"attempts={max_attempts}, max_bytes={max_bytes}"
        )

    def fetch_media(self, ref: str) -> Union[MediaBlob, Unavailable]:
        """
        Fetch media bytes for a reference.

        Args:
            ref: http(s) URL, file:// URI or local path

        Returns:
            MediaBlob on success, Unavailable otherwise

        Raises:
            RateLimitedError: If the host answered HTTP 429
        """
        self._fetch_count += 1
        scheme = urlparse(ref).scheme.lower()

        if scheme in ("http", "https"):
            result = self._fetch_http(ref)
        else:
            result = self._fetch_local(ref)

        if isinstance(result, Unavailable):
            self._unavailable_count += 1
            logger.warning(f"Media unavailable: {ref} ({result.reason})")
        else:
            logger.debug(f"Fetched {result.size} bytes from {ref}")
        return result

    def _fetch_http(self, url: str) -> Union[MediaBlob, Unavailable]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=10),
            retry=retry_if_exception_type(
                (requests.Timeout, requests.ConnectionError)
            ),
            reraise=True,
        )

        try:
            response = retrying(
                self._session.get,
                url,
                timeout=self.timeout_seconds,
                headers={"User-Agent": self.user_agent},
                stream=True,
            )
        except requests.Timeout:
            return Unavailable(ref=url, reason="timed out")
        except requests.ConnectionError as e:
            return Unavailable(ref=url, reason=f"connection failed: {e}")
        except requests.RequestException as e:
            return Unavailable(ref=url, reason=f"request failed: {e}")

        with response:
            status = response.status_code
            if status == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                raise RateLimitedError("media host", retry_after)
            # Gone, blocked or broken on the host side
            if status >= 400:
                return Unavailable(ref=url, reason=f"HTTP {status}")

            declared = _parse_content_length(response.headers.get("Content-Length"))
            if declared is not None and declared > self.max_bytes:
                return Unavailable(
                    ref=url,
                    reason=f"declared payload of {declared} bytes exceeds {self.max_bytes}",
                )

            try:
                content = self._read_body(response)
            except requests.RequestException as e:
                return Unavailable(ref=url, reason=f"download interrupted: {e}")

            if content is None:
                return Unavailable(
                    ref=url,
                    reason=f"payload exceeds {self.max_bytes} bytes",
                )
            if not content:
                return Unavailable(ref=url, reason="empty response body")

            return MediaBlob(
                ref=url,
                content=content,
                content_type=response.headers.get("Content-Type"),
            )

    def _read_body(self, response: requests.Response) -> Optional[bytes]:
        """Read a streamed body, or None as soon as it grows past max_bytes."""
        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            received += len(chunk)
            if received > self.max_bytes:
                return None
            chunks.append(chunk)
        return b"".join(chunks)

    def _fetch_local(self, ref: str) -> Union[MediaBlob, Unavailable]:
        parsed = urlparse(ref)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(ref)

        if not path.is_file():
            return Unavailable(ref=ref, reason="file not found")

        size = path.stat().st_size
        if size == 0:
            return Unavailable(ref=ref, reason="empty file")
        if size > self.max_bytes:
            return Unavailable(
                ref=ref,
                reason=f"file of {size} bytes exceeds {self.max_bytes}",
            )

        return MediaBlob(ref=ref, content=path.read_bytes())

    def get_metrics(self) -> dict:
        """Get fetcher metrics for observability."""
        return {
            "fetch_count": self._fetch_count,
            "unavailable_count": self._unavailable_count,
        }


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
