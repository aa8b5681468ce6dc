"""Streaming HTTP download of disk images."""

from __future__ import annotations

import tempfile
import time
from http.client import HTTPException
from pathlib import Path
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ctgen.constants import DEFAULT_DOWNLOAD_TIMEOUT, DOWNLOAD_CHUNK_SIZE, PROGRESS_INTERVAL, USER_AGENT
from ctgen.exceptions import DownloadError
from ctgen.utils import log

ProgressCallback = Callable[[int, Optional[int]], None]


class ProgressThrottle:
    """Forward progress at most once per *interval* seconds, plus the final update.

    Only reporting is rate limited; every chunk is still counted.
    """

    def __init__(
        self,
        callback: ProgressCallback,
        total: Optional[int],
        interval: float = PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.callback = callback
        self.total = total
        self.interval = interval
        self.clock = clock
        self.done = 0
        self._last: Optional[float] = None
        self._reported: Optional[int] = None

    def advance(self, count: int) -> None:
        self.done += count
        now = self.clock()
        if self._last is None or now - self._last >= self.interval or self.done == self.total:
            self._last = now
            self._report()

    def finish(self) -> None:
        if self._reported != self.done:
            self._report()

    def _report(self) -> None:
        self._reported = self.done
        self.callback(self.done, self.total)


def _content_length(value: Optional[str]) -> Optional[int]:
    """Declared body size, or None when the header is absent or unusable."""
    if not value:
        return None
    try:
        length = int(value)
    except ValueError:
        log("WARN", f"Ignoring malformed Content-Length: {value!r}")
        return None
    return length if length >= 0 else None


def download_file(
    url: str,
    destination: Path,
    on_progress: Optional[ProgressCallback] = None,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
) -> None:
    """Download *url* to *destination*, reporting (bytes_done, bytes_total) as it goes.

    The body lands in a temporary file next to the destination and is renamed
    into place only once complete, so a failed transfer never leaves a
    truncated image in the cache.
    """
    log("DEBUG", f"Downloading: {url}")
    req = Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urlopen(req, timeout=timeout)
    except HTTPError as exc:
        raise DownloadError(f"HTTP error downloading {url}: {exc.code} {exc.reason}")
    except URLError as exc:
        raise DownloadError(f"Failed to download {url}: {exc.reason}")
    except (HTTPException, ValueError) as exc:
        raise DownloadError(f"Failed to download {url}: {exc}")
    except OSError as exc:
        raise DownloadError(f"Failed to download {url}: {exc}")

    with response:
        status = getattr(response, "status", 200)
        if status != 200:
            raise DownloadError(f"Bad status downloading {url}: {status}")

        total_bytes = _content_length(response.headers.get("Content-Length"))
        throttle = ProgressThrottle(on_progress or (lambda done, total: None), total_bytes)
        start_time = time.time()

        with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent, prefix=".partial-") as tmp:
            tmp_path = Path(tmp.name)
            try:
                while True:
                    try:
                        chunk = response.read(DOWNLOAD_CHUNK_SIZE)
                    except (OSError, HTTPException) as exc:
                        raise DownloadError(f"Response body read failed for {url}: {exc}")
                    if not chunk:
                        break
                    tmp.write(chunk)
                    throttle.advance(len(chunk))
                throttle.finish()
                if total_bytes is not None and throttle.done != total_bytes:
                    raise DownloadError(
                        f"Download incomplete: wrote {throttle.done} bytes, expected {total_bytes}"
                    )
                tmp.flush()
            except BaseException:
                tmp.close()
                tmp_path.unlink(missing_ok=True)
                raise

    tmp_path.replace(destination)
    elapsed = time.time() - start_time
    log("DEBUG", f"Downloaded {throttle.done / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")
