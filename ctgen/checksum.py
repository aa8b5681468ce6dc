"""Locate the expected digest of an image inside a vendor checksum manifest.

Vendors publish checksums in several layouts. The supported ones are tried in
a fixed order and the first hit wins:

1. ``<digest>  <filename>`` lines (coreutils style, ``*`` binary marker allowed,
   ``#`` lines ignored)
2. ``## <filename>`` followed by ``SHA256: <digest>``
3. ``SHA256 (<filename>) = <digest>`` (BSD style)
4. a manifest holding a single bare digest

The hash algorithm is never read from the manifest; it is inferred from the
digest length.
"""

from __future__ import annotations

from http.client import HTTPException
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ctgen.constants import DEFAULT_DOWNLOAD_TIMEOUT, DIGEST_ALGORITHMS, USER_AGENT
from ctgen.exceptions import ChecksumError
from ctgen.models import ChecksumRecord
from ctgen.utils import log


def fetch_manifest(url: str, timeout: float = DEFAULT_DOWNLOAD_TIMEOUT) -> str:
    log("DEBUG", f"Fetching checksum manifest: {url}")
    req = Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urlopen(req, timeout=timeout) as response:
            body = response.read()
    except HTTPError as exc:
        raise ChecksumError(f"HTTP error fetching {url}: {exc.code} {exc.reason}")
    except URLError as exc:
        raise ChecksumError(f"Failed to fetch {url}: {exc.reason}")
    except (HTTPException, ValueError) as exc:
        # Malformed URLs (bad port) and broken responses
        raise ChecksumError(f"Failed to fetch {url}: {exc}")
    except OSError as exc:
        raise ChecksumError(f"Failed to fetch {url}: {exc}")
    return body.decode("utf-8", errors="replace")


def _match_line_pairs(lines: List[str], filename: str) -> Optional[str]:
    for line in lines:
        fields = line.split()
        # "## <filename>" headers and comments would otherwise pair up as "<digest> <filename>"
        if len(fields) < 2 or fields[0].startswith("#"):
            continue
        candidate = fields[1]
        if candidate.startswith("*"):
            candidate = candidate[1:]
        if candidate == filename:
            return fields[0]
    return None


def _match_block_header(lines: List[str], filename: str) -> Optional[str]:
    for idx, line in enumerate(lines[:-1]):
        if line.startswith("## ") and line[3:] == filename:
            following = lines[idx + 1]
            if following.startswith("SHA256: "):
                digest = following[len("SHA256: "):].strip()
                if digest:
                    return digest
    return None


def _match_parenthesized(lines: List[str], filename: str) -> Optional[str]:
    needle = f"({filename})"
    for line in lines:
        if needle not in line:
            continue
        parts = line.split("= ")
        if len(parts) == 2 and parts[1].strip():
            return parts[1].strip()
    return None


def find_digest(manifest: str, filename: str) -> Optional[str]:
    """Return the digest listed for *filename*, or None when no layout matches."""
    lines = manifest.splitlines()
    for strategy in (_match_line_pairs, _match_block_header, _match_parenthesized):
        digest = strategy(lines, filename)
        if digest:
            return digest
    tokens = manifest.split()
    if len(tokens) == 1:
        # Manifest covers a single file
        return tokens[0]
    return None


def infer_algorithm(digest: str) -> str:
    try:
        return DIGEST_ALGORITHMS[len(digest)]
    except KeyError:
        raise ChecksumError(f"Unsupported checksum length: {len(digest)}")


def parse_manifest(manifest: str, filename: str) -> ChecksumRecord:
    digest = find_digest(manifest, filename)
    if digest is None:
        raise ChecksumError(f"Checksum for {filename} not found in checksum file")
    return ChecksumRecord(digest=digest, algorithm=infer_algorithm(digest))


def resolve_checksum(url: str, filename: str, timeout: float = DEFAULT_DOWNLOAD_TIMEOUT) -> ChecksumRecord:
    """Fetch the manifest at *url* and return the digest recorded for *filename*."""
    return parse_manifest(fetch_manifest(url, timeout=timeout), filename)
