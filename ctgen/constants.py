"""Global constants and path configuration for pve-ctgen."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_IMAGES_PATH = Path("config/os_list.json")
DEFAULT_STEPS_PATH = Path("config/steps.json")

# Proxmox VE storage locations
ISO_DIR = Path("/var/lib/vz/template/iso")
SNIPPETS_DIR = Path("/var/lib/vz/snippets")

LOG_DIR = Path("logs")
CLOUDINIT_DIR = Path("cloudinit")
STAGING_FILE = Path("base.qcow2")

TRUTHY = {"1", "true", "yes", "on"}

# Pause after each successful step so the operator can follow progress
DEFAULT_STEP_DELAY = 1.0
PROGRESS_INTERVAL = 0.1
DOWNLOAD_CHUNK_SIZE = 1024 * 256  # 256 KiB
HASH_CHUNK_SIZE = 1024 * 1024
DEFAULT_DOWNLOAD_TIMEOUT = 60
USER_AGENT = "pve-ctgen/1.0"

DOWNLOAD_STEP_NAME = "Download/Verify"
COPY_STEP_NAME = "Copy Image"
STATIC_STEP_NAMES = (DOWNLOAD_STEP_NAME, COPY_STEP_NAME)

PLACEHOLDERS = ("{{.ID}}", "{{.Name}}", "{{.Tags}}", "{{.Vendor}}", "{{.FilePath}}")

# Digest length (hex characters) -> hashlib algorithm name
DIGEST_ALGORITHMS = {
    128: "sha512",
    64: "sha256",
    40: "sha1",
    32: "md5",
}

SHELL = os.environ.get("CTGEN_SHELL", "bash")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY
