"""pve-ctgen package."""

__all__ = [
    "acquire",
    "checksum",
    "cli",
    "config",
    "constants",
    "download",
    "exceptions",
    "executor",
    "models",
    "pipeline",
    "provision",
    "status",
    "utils",
]
