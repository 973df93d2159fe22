from pathlib import Path
from typing import List

import httpx
import pytest

from jdkstrap.downloads import HTTPXDownloader, download_archive
from jdkstrap.errors import DownloadError

URL = "https://cdn.example/zulu/bin/zulu17-linux_x64.tar.gz"


def mock_factory(handler):
    def factory(timeout: httpx.Timeout) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler), timeout=timeout)

    return factory


def test_downloader_streams_to_output_file(tmp_path: Path):
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"archive-bytes")

    downloader = HTTPXDownloader(timeout=5, client_factory=mock_factory(handler))
    output = tmp_path / "nested" / "jdk.tar.gz"

    downloader(URL, str(output), None)

    assert output.read_bytes() == b"archive-bytes"
    assert [str(r.url) for r in requests] == [URL]
    assert list(output.parent.iterdir()) == [output]


def test_downloader_retries_transient_failures(tmp_path: Path):
    statuses = [503, 429, 200]
    sleeps: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        headers = {"Retry-After": "3"} if status == 429 else {}
        return httpx.Response(status, content=b"ok" if status == 200 else b"", headers=headers)

    downloader = HTTPXDownloader(
        timeout=5,
        backoff_initial=0.5,
        sleep=sleeps.append,
        client_factory=mock_factory(handler),
    )
    output = tmp_path / "jdk.tar.gz"

    downloader(URL, str(output), None)

    assert output.read_bytes() == b"ok"
    assert sleeps == [0.5, 3.0]


def test_downloader_gives_up_on_not_found_with_hint(tmp_path: Path):
    downloader = HTTPXDownloader(
        timeout=5,
        sleep=lambda _s: pytest.fail("404 must not be retried"),
        client_factory=mock_factory(lambda request: httpx.Response(404)),
    )

    with pytest.raises(DownloadError) as excinfo:
        downloader(URL, str(tmp_path / "jdk.tar.gz"), None)

    message = str(excinfo.value)
    assert "404 Not Found" in message
    assert "check the distribution, version, os and arch" in message
    assert not list(tmp_path.iterdir())


def test_downloader_stops_after_max_attempts(tmp_path: Path):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    downloader = HTTPXDownloader(
        timeout=5, max_attempts=3, sleep=lambda _s: None, client_factory=mock_factory(handler)
    )

    with pytest.raises(DownloadError, match="after 3 attempt"):
        downloader(URL, str(tmp_path / "jdk.tar.gz"), None)
    assert len(calls) == 3


def test_download_archive_fetches_once_then_uses_cache(tmp_path: Path):
    fetched = []

    def fake_downloader(url, output_file, pooch_obj, **kwargs):
        fetched.append(url)
        Path(output_file).write_bytes(b"jdk")

    directory = tmp_path / "downloads" / "azul-zulu"

    first = download_archive(URL, directory, downloader=fake_downloader)
    second = download_archive(URL, directory, downloader=fake_downloader)

    assert first == second == directory / "zulu17-linux_x64.tar.gz"
    assert first.read_bytes() == b"jdk"
    assert fetched == [URL]


def test_download_archive_checks_known_hash(tmp_path: Path):
    def fake_downloader(url, output_file, pooch_obj, **kwargs):
        Path(output_file).write_bytes(b"tampered")

    with pytest.raises(DownloadError, match="failed to download JDK archive"):
        download_archive(
            URL,
            tmp_path,
            known_hash="sha256:" + "0" * 64,
            downloader=fake_downloader,
        )
