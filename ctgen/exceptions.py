"""Custom exceptions for pve-ctgen."""

from __future__ import annotations

from typing import Optional


class GeneratorError(RuntimeError):
    """Raised on configuration errors and on failures inside an image pipeline."""


class ChecksumError(GeneratorError):
    """The expected digest could not be located or its algorithm is unsupported."""


class DownloadError(GeneratorError):
    """Fetching a disk image failed."""


class CommandError(GeneratorError):
    """An external command could not be started or exited non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class ProvisioningError(GeneratorError):
    """One or more provisioning steps failed for an image."""
