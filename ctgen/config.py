"""Configuration loading and environment variable parsing for pve-ctgen."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from ctgen.constants import (
    CLOUDINIT_DIR,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_IMAGES_PATH,
    DEFAULT_STEP_DELAY,
    DEFAULT_STEPS_PATH,
    ISO_DIR,
    LOG_DIR,
    SNIPPETS_DIR,
    STAGING_FILE,
)
from ctgen.exceptions import GeneratorError
from ctgen.models import ImageSpec, StepSpec
from ctgen.utils import get_env, parse_float_env, parse_int_env

URL_RE = re.compile(r"^https?://")


@dataclass(frozen=True)
class GeneratorConfig:
    images_path: Path
    steps_path: Path
    iso_dir: Path
    snippets_dir: Path
    log_dir: Path
    cloudinit_dir: Optional[Path]
    staging_file: Path
    step_delay: float
    download_timeout: int


def _read_document(path: Path, key: str) -> List[Any]:
    """Load a JSON or YAML list, either top level or under *key*."""
    if not path.exists():
        raise GeneratorError(f"Config file missing: {path}")
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise GeneratorError(f"Error reading {path}: {exc}")
    except yaml.YAMLError as exc:
        raise GeneratorError(f"Error parsing {path}: {exc}")
    if isinstance(data, dict):
        data = data.get(key)
    if data is None:
        return []
    if not isinstance(data, list):
        raise GeneratorError(f"{path} must contain a list of {key}")
    return data


def _text(entry: dict, field: str, label: str, required: bool = True) -> str:
    value = entry.get(field)
    if value is None:
        if required:
            raise GeneratorError(f"{label}: missing required field '{field}'")
        return ""
    if not isinstance(value, str):
        raise GeneratorError(f"{label}: '{field}' must be a string")
    return value


def load_images(path: Path) -> List[ImageSpec]:
    images: List[ImageSpec] = []
    seen = set()
    for position, entry in enumerate(_read_document(path, "images"), start=1):
        label = f"{path} image #{position}"
        if not isinstance(entry, dict):
            raise GeneratorError(f"{label}: entry is not a mapping")

        image_id = entry.get("id")
        # bool is an int subclass; reject it explicitly
        if not isinstance(image_id, int) or isinstance(image_id, bool):
            raise GeneratorError(f"{label}: 'id' must be an integer")
        name = _text(entry, "name", label).strip()
        if not name or "/" in name or name in (".", ".."):
            raise GeneratorError(f"{label}: 'name' must be a plain file name (got '{name}')")
        if name in seen:
            raise GeneratorError(f"{label}: duplicate image name '{name}'")
        seen.add(name)

        url = _text(entry, "url", label).strip()
        if not URL_RE.match(url):
            raise GeneratorError(f"{label}: 'url' must start with http:// or https://")
        checksum_url = _text(entry, "checksum_url", label, required=False).strip()
        if checksum_url and not URL_RE.match(checksum_url):
            raise GeneratorError(f"{label}: 'checksum_url' must start with http:// or https://")

        images.append(
            ImageSpec(
                id=image_id,
                name=name,
                url=url,
                checksum_url=checksum_url,
                tags=_text(entry, "tags", label, required=False),
                vendor=_text(entry, "vendor", label, required=False).strip(),
            )
        )
    return images


def load_steps(path: Path) -> List[StepSpec]:
    steps: List[StepSpec] = []
    for position, entry in enumerate(_read_document(path, "steps"), start=1):
        label = f"{path} step #{position}"
        if not isinstance(entry, dict):
            raise GeneratorError(f"{label}: entry is not a mapping")
        steps.append(StepSpec(name=_text(entry, "name", label), command=_text(entry, "command", label)))
    return steps


def _path_env(name: str, default: Path) -> Path:
    raw = (get_env(name) or "").strip()
    return Path(raw) if raw else default


def parse_env() -> GeneratorConfig:
    cloudinit_raw = get_env("CLOUDINIT_DIR")
    if cloudinit_raw is None:
        cloudinit_dir: Optional[Path] = CLOUDINIT_DIR
    else:
        # An explicitly empty value turns the vendor snippet install off
        cloudinit_dir = Path(cloudinit_raw.strip()) if cloudinit_raw.strip() else None

    return GeneratorConfig(
        images_path=_path_env("CTGEN_IMAGES", DEFAULT_IMAGES_PATH),
        steps_path=_path_env("CTGEN_STEPS", DEFAULT_STEPS_PATH),
        iso_dir=_path_env("ISO_DIR", ISO_DIR),
        snippets_dir=_path_env("SNIPPETS_DIR", SNIPPETS_DIR),
        log_dir=_path_env("LOG_DIR", LOG_DIR),
        cloudinit_dir=cloudinit_dir,
        staging_file=_path_env("STAGING_FILE", STAGING_FILE),
        step_delay=parse_float_env("STEP_DELAY", str(DEFAULT_STEP_DELAY)),
        download_timeout=parse_int_env("DOWNLOAD_TIMEOUT", str(DEFAULT_DOWNLOAD_TIMEOUT), min_val=1),
    )
