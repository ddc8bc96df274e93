"""Shared git helper utilities.

Centralises non-interactive git environment setup, credential redaction and
the ``git`` subprocess runner. Consumed by ``lib.git`` and ``lib.github``.
"""

from __future__ import annotations

__all__ = [
    "GitCommandError",
    "git_noninteractive_env",
    "redact_sensitive",
    "run_git",
]

import os
import re
import subprocess
from pathlib import Path

_GIT_TIMEOUT_S = 30

_REDACTIONS = (
    (re.compile(r"(https?://)[^/@\s]+@"), r"\1***@"),
    (re.compile(r"(Authorization:\s*\w+\s+)\S+", re.IGNORECASE), r"\1***"),
)


class GitCommandError(RuntimeError):
    """A git subprocess exited non-zero."""

    def __init__(self, message: str, *, returncode: int, stderr: str) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def git_noninteractive_env() -> dict[str, str]:
    """Return a copy of the environment with interactive git prompts disabled.

    Sets ``GIT_TERMINAL_PROMPT=0`` and ``GCM_INTERACTIVE=never`` so that
    credential helpers never block on stdin in automated contexts.
    """
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


def redact_sensitive(text: str) -> str:
    """Replace URL userinfo and authorization header values with ``***``.

    Args:
        text: String that may contain token-bearing URLs or
            ``http.extraHeader`` values.

    Returns:
        Sanitised string safe for logging and error messages.
    """
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def run_git(
    args: list[str],
    *,
    cwd: Path | str | None = None,
    timeout: int | None = _GIT_TIMEOUT_S,
) -> subprocess.CompletedProcess[str]:
    """Run ``git <args>``, raising :class:`GitCommandError` on failure.

    ``FileNotFoundError`` (git missing) and ``subprocess.TimeoutExpired``
    propagate unchanged.
    """
    cmd = ["git", *args]
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
        env=git_noninteractive_env(),
    )
    if result.returncode != 0:
        safe_cmd = " ".join(redact_sensitive(part) for part in cmd)
        safe_stderr = redact_sensitive(result.stderr.strip())
        msg = f"git failed ({safe_cmd}): {safe_stderr}"
        raise GitCommandError(msg, returncode=result.returncode, stderr=safe_stderr)
    return result
