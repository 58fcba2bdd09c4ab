from __future__ import annotations

import httpx
import pytest

from stickersmith.errors import DownloadError, ErrorKind, NoCandidateAvailable
from stickersmith.media.downloader import ImageDownloader
from stickersmith.models import CandidateSource


def _downloader(handler, **kwargs) -> tuple[ImageDownloader, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(recording), follow_redirects=True)
    return ImageDownloader(client=client, **kwargs), seen


def test_fetch_returns_raw_asset_with_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"GIF89a-data", headers={"Content-Type": "image/gif"})

    downloader, seen = _downloader(handler)
    asset = downloader.fetch("https://cdn.example.com/stickers/42.gif?size=160")

    assert asset.data == b"GIF89a-data"
    assert asset.content_type == "image/gif"
    assert asset.filename == "42.gif"
    assert asset.source_url == "https://cdn.example.com/stickers/42.gif?size=160"
    assert len(seen) == 1


def test_fetch_sends_browser_user_agent() -> None:
    downloader, seen = _downloader(lambda request: httpx.Response(200, content=b"x"))

    downloader.fetch("https://cdn.example.com/a.png")

    assert seen[0].headers["User-Agent"] == downloader.user_agent
    assert "Mozilla/5.0" in downloader.user_agent


@pytest.mark.parametrize("status", [403, 404, 500])
def test_fetch_non_2xx_is_download_error(status: int) -> None:
    downloader, _ = _downloader(lambda request: httpx.Response(status, content=b"nope"))

    with pytest.raises(DownloadError) as excinfo:
        downloader.fetch("https://cdn.example.com/a.png")

    assert excinfo.value.kind is ErrorKind.DOWNLOAD_ERROR
    assert excinfo.value.status_code == status


def test_fetch_timeout_is_download_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    downloader, _ = _downloader(handler)

    with pytest.raises(DownloadError) as excinfo:
        downloader.fetch("https://cdn.example.com/a.png")

    assert isinstance(excinfo.value.cause, httpx.TimeoutException)


def test_fetch_empty_body_is_download_error() -> None:
    downloader, _ = _downloader(lambda request: httpx.Response(200, content=b""))

    with pytest.raises(DownloadError):
        downloader.fetch("https://cdn.example.com/a.png")


def test_fetch_enforces_download_limit() -> None:
    downloader, _ = _downloader(lambda request: httpx.Response(200, content=b"x" * 2048), max_bytes=1024)

    with pytest.raises(DownloadError) as excinfo:
        downloader.fetch("https://cdn.example.com/big.png")

    assert "limit" in str(excinfo.value)


def test_fetch_rejects_non_http_scheme() -> None:
    downloader, seen = _downloader(lambda request: httpx.Response(200, content=b"x"))

    with pytest.raises(DownloadError):
        downloader.fetch("file:///etc/passwd")

    assert seen == []


def test_first_success_stops_at_first_working_candidate() -> None:
    responses = {
        "/a.png": httpx.Response(404),
        "/b.gif": httpx.Response(200, content=b"GIF89a"),
        "/c.webp": httpx.Response(200, content=b"RIFF"),
    }
    downloader, seen = _downloader(lambda request: responses[request.url.path])
    candidates = CandidateSource.from_urls(
        [
            "https://cdn.example.com/a.png",
            "https://cdn.example.com/b.gif",
            "https://cdn.example.com/c.webp",
        ]
    )

    asset = downloader.fetch_first_success(candidates)

    assert asset.data == b"GIF89a"
    assert [request.url.path for request in seen] == ["/a.png", "/b.gif"]


def test_all_candidates_failing_raises_no_candidate_available() -> None:
    downloader, seen = _downloader(lambda request: httpx.Response(404))
    urls = ["https://cdn.example.com/1.png", "https://cdn.example.com/1.gif"]

    with pytest.raises(NoCandidateAvailable) as excinfo:
        downloader.fetch_first_success(urls)

    error = excinfo.value
    assert error.kind is ErrorKind.NO_CANDIDATE_AVAILABLE
    assert error.attempted == tuple(urls)
    assert isinstance(error.cause, DownloadError)
    assert len(seen) == 2


def test_no_candidates_at_all() -> None:
    downloader, _ = _downloader(lambda request: httpx.Response(200, content=b"x"))

    with pytest.raises(NoCandidateAvailable):
        downloader.fetch_first_success([])
