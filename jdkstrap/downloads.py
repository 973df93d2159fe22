"""JDK archive fetching backed by pooch and httpx."""

from __future__ import annotations

import os
import sys
import time
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pooch

from .console import log, log_error
from .constants import HTTP_TIMEOUT_SECONDS
from .errors import DownloadError
from .http import describe_http_error, download_error_hint, http_timeout, request_headers
from .utils import remove_quietly

ClientFactory = Callable[[httpx.Timeout], httpx.Client]


def default_client_factory(timeout: httpx.Timeout) -> httpx.Client:
    return httpx.Client(timeout=timeout, follow_redirects=True, headers=request_headers())


class HTTPXDownloader:
    """Pooch downloader that streams with httpx and retries transient failures."""

    RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

    def __init__(
        self,
        timeout: float,
        *,
        max_attempts: int = 5,
        backoff_initial: float = 0.5,
        backoff_max: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_initial = max(0.0, float(backoff_initial))
        self.backoff_max = max(self.backoff_initial, float(backoff_max))
        self.sleep = sleep
        self.client_factory = client_factory or default_client_factory

    def _retry_delay(self, attempt: int, exc: httpx.HTTPError) -> float:
        if isinstance(exc, httpx.HTTPStatusError):
            retry_after = exc.response.headers.get("Retry-After")
            if retry_after:
                try:
                    parsed = float(retry_after)
                except ValueError:
                    parsed = 0.0
                if parsed > 0:
                    return min(parsed, self.backoff_max)
        if attempt <= 0:
            return 0.0
        return min(self.backoff_initial * (2 ** (attempt - 1)), self.backoff_max)

    def _should_retry(self, exc: httpx.HTTPError) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in self.RETRYABLE_STATUSES
        return isinstance(exc, (httpx.TimeoutException, httpx.RequestError))

    def __call__(
        self,
        url: str,
        output_file: str,
        pooch_obj: Optional[pooch.Pooch],
        check_only: bool = False,
        progressbar: bool = False,
        **_: Any,
    ) -> None:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        part_path = Path(f"{output_file}.part-{os.getpid()}")
        show_progress = bool(progressbar and not check_only and sys.stderr.isatty())

        for attempt in range(1, self.max_attempts + 1):
            progress = _DownloadProgress(output_path.name, show_progress)
            try:
                with self.client_factory(http_timeout(self.timeout)) as client:
                    if check_only:
                        client.head(url).raise_for_status()
                        return
                    self._stream_to(client, url, part_path, progress)
                os.replace(part_path, output_path)
                return
            except httpx.HTTPError as exc:
                remove_quietly(part_path)
                detail = describe_http_error(exc)
                if attempt == self.max_attempts or not self._should_retry(exc):
                    hint = download_error_hint(exc)
                    raise DownloadError(
                        f"download failed for {url} after {attempt} attempt(s): {detail}"
                        + (f" Hint: {hint}" if hint else "")
                    ) from exc
                delay = self._retry_delay(attempt, exc)
                log_error(
                    f"download of {output_path.name} failed ({detail}), "
                    f"retry {attempt + 1}/{self.max_attempts} in {delay:.1f}s"
                )
                if delay > 0:
                    self.sleep(delay)
            except OSError as exc:
                remove_quietly(part_path)
                raise DownloadError(f"failed to write download file {output_path}: {exc}") from exc
            finally:
                progress.close()

    @staticmethod
    def _stream_to(
        client: httpx.Client, url: str, part_path: Path, progress: "_DownloadProgress"
    ) -> None:
        remove_quietly(part_path)
        with client.stream("GET", url) as response:
            response.raise_for_status()
            progress.start(_content_length(response))
            with part_path.open("wb") as fh:
                for chunk in response.iter_bytes(chunk_size=64 * 1024):
                    fh.write(chunk)
                    progress.advance(len(chunk))


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


HTTPX_DOWNLOADER = HTTPXDownloader(timeout=HTTP_TIMEOUT_SECONDS)


def _human_size(num_bytes: float) -> str:
    size = max(float(num_bytes), 0.0)
    if size < 1024:
        return f"{int(size)} B"
    for unit in ("KB", "MB", "GB"):
        size /= 1024.0
        if size < 1024:
            break
    return f"{size:.1f} {unit}"


class _DownloadProgress:
    """Single-line ``\\r`` progress on stderr, redrawn at most ten times a second."""

    def __init__(self, label: str, enabled: bool) -> None:
        self.label = label
        self.enabled = enabled
        self.total: Optional[int] = None
        self.received = 0
        self._drawn_at = 0.0

    def start(self, total: Optional[int]) -> None:
        self.total = total if total and total > 0 else None
        self._draw()

    def advance(self, count: int) -> None:
        self.received += count
        now = time.monotonic()
        if now - self._drawn_at >= 0.1:
            self._draw(now)

    def close(self) -> None:
        if self.enabled:
            self._draw()
            sys.stderr.write("\n")
            sys.stderr.flush()
            self.enabled = False

    def _draw(self, now: Optional[float] = None) -> None:
        if not self.enabled:
            return
        self._drawn_at = time.monotonic() if now is None else now
        line = f"{self.label} {_human_size(self.received)}"
        if self.total:
            percent = min(100, self.received * 100 // self.total)
            line += f" of {_human_size(self.total)} ({percent}%)"
        sys.stderr.write(f"\r{line}")
        sys.stderr.flush()


def download_archive(
    url: str,
    directory: Path,
    *,
    fname: Optional[str] = None,
    known_hash: Optional[str] = None,
    downloader: Optional[Callable[..., None]] = None,
) -> Path:
    """Fetch ``url`` into ``directory`` unless a cached copy already exists."""
    name = fname or url.rstrip("/").rsplit("/", 1)[-1]
    target = Path(directory) / name
    if target.exists() and known_hash is None:
        return target
    log(f"downloading {url}")
    try:
        return Path(
            pooch.retrieve(
                url=url,
                path=directory,
                fname=name,
                known_hash=known_hash,
                downloader=downloader or partial(HTTPX_DOWNLOADER, progressbar=True),
                progressbar=False,
            )
        )
    except DownloadError:
        raise
    except (ValueError, OSError) as exc:
        raise DownloadError(f"failed to download JDK archive {url}: {exc}") from exc
