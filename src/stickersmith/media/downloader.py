from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Iterable, Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from ..config import DEFAULT_USER_AGENT
from ..errors import DownloadError, NoCandidateAvailable
from ..models import Candidate, RawAsset

logger = logging.getLogger(__name__)

CandidateLike = Union[Candidate, str]


class ImageDownloader:
    """Download remote sticker media into memory, one attempt per URL."""

    __slots__ = ("timeout", "user_agent", "max_bytes", "client")

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_bytes: int = 10 * 1024 * 1024,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_bytes = max_bytes
        self.client = client

    def fetch(self, url: str) -> RawAsset:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise DownloadError(f"Unsupported URL scheme: {parsed.scheme or '(none)'}", url=url)

        should_close = False
        client = self.client
        if client is None:
            client = httpx.Client(follow_redirects=True, timeout=self.timeout)
            should_close = True

        try:
            logger.debug("Downloading %s", url)
            with client.stream("GET", url, headers=self._build_headers()) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Server returned HTTP {response.status_code} for {url}",
                        url=url,
                        status_code=response.status_code,
                    )
                self._check_declared_length(response, url)
                data = self._read_limited(response, url)
                content_type = response.headers.get("Content-Type")
        except httpx.TimeoutException as exc:
            raise DownloadError(f"Timed out after {self.timeout}s fetching {url}", url=url, cause=exc) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DownloadError(f"Network error fetching {url}: {exc}", url=url, cause=exc) from exc
        finally:
            if should_close:
                client.close()

        if not data:
            raise DownloadError(f"Empty response body from {url}", url=url)

        logger.debug("Downloaded %s bytes from %s", len(data), url)
        return RawAsset(
            data=data,
            content_type=content_type,
            filename=_filename_from_url(url),
            source_url=url,
        )

    def fetch_first_success(self, candidates: Iterable[CandidateLike]) -> RawAsset:
        """Try *candidates* in order and return the first successful download."""

        attempted: list[str] = []
        last_error: Optional[DownloadError] = None
        for candidate in candidates:
            url = candidate.url if isinstance(candidate, Candidate) else candidate
            attempted.append(url)
            try:
                asset = self.fetch(url)
            except DownloadError as exc:
                logger.warning("Candidate %s failed: %s", url, exc)
                last_error = exc
                continue
            logger.info("Fetched candidate %s after %s attempt(s)", url, len(attempted))
            return asset

        if not attempted:
            raise NoCandidateAvailable("No candidate URLs were supplied")
        raise NoCandidateAvailable(
            f"None of {len(attempted)} candidate URLs could be downloaded",
            attempted=attempted,
            cause=last_error,
        )

    def _build_headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "image/*,*/*;q=0.8"}

    def _check_declared_length(self, response: httpx.Response, url: str) -> None:
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise DownloadError(
                f"Declared size {declared} bytes exceeds download limit of {self.max_bytes}",
                url=url,
                status_code=response.status_code,
            )

    def _read_limited(self, response: httpx.Response, url: str) -> bytes:
        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) > self.max_bytes:
                raise DownloadError(
                    f"Response from {url} exceeds download limit of {self.max_bytes} bytes",
                    url=url,
                    status_code=response.status_code,
                )
        return bytes(buffer)


def _filename_from_url(url: str) -> Optional[str]:
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or None
