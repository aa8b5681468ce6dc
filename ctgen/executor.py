"""Run external commands while streaming their output line by line."""

from __future__ import annotations

import subprocess
import threading
from typing import IO, Callable, List, Sequence

from ctgen.constants import SHELL
from ctgen.exceptions import CommandError
from ctgen.utils import log

LineCallback = Callable[[str], None]


def _drain(stream: IO[str], label: str, on_line: LineCallback) -> None:
    try:
        for raw in stream:
            line = raw.rstrip("\r\n")
            try:
                on_line(line)
            except Exception as exc:
                # Keep reading so the child never blocks on a full pipe
                log("WARN", f"Output handler failed on {label}: {exc}")
    except (OSError, ValueError) as exc:
        # The exit status stays authoritative; a broken pipe alone does not fail the command.
        log("WARN", f"Error reading {label}: {exc}")
    finally:
        stream.close()


def run_streaming(cmd: Sequence[str], on_line: LineCallback) -> None:
    """Run *cmd*, passing every stdout and stderr line to *on_line* as it arrives.

    Each stream has its own reader thread so a chatty stream cannot fill its
    pipe and stall the other. Order is preserved within a stream but not
    across the two. Both readers finish before the exit status is examined.
    """
    log("DEBUG", f"Running: {' '.join(cmd)}")
    try:
        proc = subprocess.Popen(
            list(cmd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise CommandError(f"Failed to start command: {exc}")

    readers: List[threading.Thread] = [
        threading.Thread(target=_drain, args=(proc.stdout, "stdout", on_line), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, "stderr", on_line), daemon=True),
    ]
    for reader in readers:
        reader.start()
    try:
        for reader in readers:
            reader.join()
        returncode = proc.wait()
    except KeyboardInterrupt:
        proc.terminate()
        proc.wait()
        raise

    if returncode != 0:
        raise CommandError(f"Command failed with exit status {returncode}", returncode)


def shell_command(command: str) -> List[str]:
    return [SHELL, "-c", command]


class CommandExecutor:
    """Executes shell command strings; the seam tests replace with a spy."""

    def run(self, command: str, on_line: LineCallback) -> None:
        run_streaming(shell_command(command), on_line)
