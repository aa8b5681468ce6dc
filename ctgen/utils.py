"""Utility functions for pve-ctgen."""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from ctgen.constants import _LOG_VERBOSE, HASH_CHUNK_SIZE, TRUTHY
from ctgen.exceptions import GeneratorError


def log(level: str, message: str) -> None:
    """Lightweight structured logging with one colour per level."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise GeneratorError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise GeneratorError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise GeneratorError(f"{name} must be <= {max_val} (got {value})")
    return value


def parse_float_env(name: str, default: str, min_val: float = 0.0) -> float:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = float(raw)
    except ValueError:
        raise GeneratorError(f"{name} must be a number (got '{raw}')")
    if value < min_val:
        raise GeneratorError(f"{name} must be >= {min_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def url_filename(url: str) -> str:
    """Return the last path component of a URL, ignoring query and fragment."""
    return Path(urlparse(url).path).name


def copy_file(source: Path, destination: Path) -> None:
    """Copy file contents only; an existing destination is overwritten."""
    with open(source, "rb") as src, open(destination, "wb") as dst:
        shutil.copyfileobj(src, dst, HASH_CHUNK_SIZE)


def file_checksum(path: Path, algorithm: str) -> str:
    """Hex digest of a file, read in chunks so large images never sit in memory."""
    try:
        digest = hashlib.new(algorithm.lower())
    except ValueError:
        raise GeneratorError(f"Unsupported checksum algorithm: {algorithm}")
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
