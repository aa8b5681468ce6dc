#!/usr/bin/env python3
"""Validate config/os_list.json: schema correctness and URL reachability."""

from __future__ import annotations

import re
import sys
from pathlib import Path

import requests
import yaml

IMAGES_PATH = Path(__file__).resolve().parents[2] / "config" / "os_list.json"
URL_RE = re.compile(r"^https?://")
REQUEST_TIMEOUT = 30
USER_AGENT = "pve-ctgen/image-validator (GitHub Actions)"


def load_images(path: Path) -> list:
    with open(path) as f:
        data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("images")
    return data


# ── Phase 1: Schema validation (fail-fast) ──────────────────────────


def validate_schema(images) -> list[str]:
    errors: list[str] = []

    if not isinstance(images, list):
        errors.append("Image list must be a sequence")
        return errors

    names: set[str] = set()
    ids: set[int] = set()
    for position, entry in enumerate(images, start=1):
        key = f"#{position}"
        if not isinstance(entry, dict):
            errors.append(f"[{key}] entry is not a mapping")
            continue
        key = f"#{position} {entry.get('name', '?')}"

        # id
        image_id = entry.get("id")
        if not isinstance(image_id, int) or isinstance(image_id, bool):
            errors.append(f"[{key}] 'id' must be an integer")
        elif image_id in ids:
            errors.append(f"[{key}] duplicate id {image_id}")
        else:
            ids.add(image_id)

        # name
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            errors.append(f"[{key}] missing required field 'name'")
        elif "/" in name:
            errors.append(f"[{key}] 'name' must not contain '/'")
        elif name in names:
            errors.append(f"[{key}] duplicate name '{name}'")
        else:
            names.add(name)

        # url / checksum_url
        for field, required in (("url", True), ("checksum_url", False)):
            value = entry.get(field)
            if value in (None, ""):
                if required:
                    errors.append(f"[{key}] missing required field '{field}'")
                continue
            if not isinstance(value, str) or not URL_RE.match(value):
                errors.append(f"[{key}] '{field}' must start with http:// or https://")

        # vendor
        if not isinstance(entry.get("vendor", ""), str):
            errors.append(f"[{key}] 'vendor' must be a string")

    return errors


# ── Phase 2: URL reachability (collect-all) ──────────────────────────


def check_url(key: str, url: str) -> str | None:
    """Return an error string if the URL is unreachable, else None."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT

    try:
        resp = session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True)
        if resp.status_code < 400:
            return None
        # Some mirrors reject HEAD; fall back to a streamed GET
        if resp.status_code in (403, 405):
            resp = session.get(url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True)
            resp.close()
            if resp.status_code < 400:
                return None
        return f"[{key}] HTTP {resp.status_code} for {url}"
    except requests.RequestException as exc:
        return f"[{key}] {exc.__class__.__name__}: {exc} for {url}"


def validate_urls(images: list) -> list[str]:
    errors: list[str] = []
    for entry in images:
        key = entry["name"]
        for field in ("url", "checksum_url"):
            url = entry.get(field)
            if not url:
                continue
            err = check_url(f"{key} {field}", url)
            if err:
                errors.append(err)
    return errors


# ── Main ─────────────────────────────────────────────────────────────


def main() -> int:
    print(f"Loading {IMAGES_PATH}")
    images = load_images(IMAGES_PATH)

    print("\n=== Phase 1: Schema validation ===")
    schema_errors = validate_schema(images)
    if schema_errors:
        for e in schema_errors:
            print(f"  ERROR: {e}")
        print(f"\nSchema validation failed with {len(schema_errors)} error(s)")
        return 1
    print(f"  OK: {len(images)} images, all schemas valid")

    print("\n=== Phase 2: URL reachability ===")
    url_errors = validate_urls(images)
    if url_errors:
        for e in url_errors:
            print(f"  ERROR: {e}")
        print(f"\nURL validation failed: {len(url_errors)} unreachable")
        return 1
    print("  OK: all URLs reachable")

    print("\nAll checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
