"""Acquisition stage: make sure a verified copy of an image exists locally."""

from __future__ import annotations

from pathlib import Path

from ctgen.checksum import resolve_checksum
from ctgen.constants import DEFAULT_DOWNLOAD_TIMEOUT
from ctgen.download import download_file
from ctgen.exceptions import ChecksumError, DownloadError, GeneratorError
from ctgen.models import ImageSpec
from ctgen.status import StatusSink
from ctgen.utils import file_checksum, log, url_filename


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        log("WARN", f"Could not remove {path}: {exc}")


def cached_image_valid(image: ImageSpec, path: Path, sink: StatusSink, timeout: float) -> bool:
    """Return True when the cached file at *path* can be reused as is."""
    if not image.checksum_url:
        sink.output("☑️ File exists, no checksum URL provided. Skipping check and download.")
        return True

    sink.output("🔎 Verifying checksum...")
    # Manifests list the upstream file name, not our local alias
    try:
        expected = resolve_checksum(image.checksum_url, url_filename(image.url), timeout=timeout)
    except ChecksumError as exc:
        sink.output(f"⚠️ Could not get checksum: {exc}. Re-downloading...")
        return False

    try:
        actual = file_checksum(path, expected.algorithm)
    except (OSError, GeneratorError) as exc:
        sink.output(f"⚠️ Could not calculate local checksum: {exc}. Re-downloading...")
        return False

    if actual.lower() == expected.digest.lower():
        sink.output(f"✅ Checksum match ({expected.algorithm}). Skipping download.")
        return True
    sink.output(f"❌ Checksum mismatch ({expected.algorithm}). Re-downloading...")
    return False


def acquire_image(
    image: ImageSpec,
    target_dir: Path,
    sink: StatusSink,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
) -> Path:
    """Return the local path of *image*, downloading it when missing or stale.

    Checksum problems only ever lead to a fresh download; the only error
    raised is a DownloadError from that download.
    """
    path = target_dir / image.name
    if path.exists():
        if cached_image_valid(image, path, sink, timeout):
            return path
        _discard(path)

    sink.output(f"Downloading {image.url}")
    try:
        download_file(image.url, path, on_progress=sink.progress, timeout=timeout)
    except (OSError, DownloadError) as exc:
        raise DownloadError(f"Download failed: {exc}") from exc
    sink.output("Download complete.")
    return path
