"""Open a linked working copy in an external editor, IDE, file browser, or terminal.

Launches are best effort: every entry point returns ``True`` once a process
has been started and ``False`` on any failure, never raising.
"""

from __future__ import annotations

__all__ = [
    "LaunchKind",
    "Launcher",
    "LauncherCommands",
    "ProcessLauncher",
    "find_solution_file",
    "has_solution_file",
]

import logging
import shutil
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

PATH_PLACEHOLDER = "{path}"
SOLUTION_PATTERNS = ("*.slnx", "*.sln")


class LaunchKind(str, Enum):
    """External tools a working copy can be opened in."""

    EDITOR = "editor"
    IDE = "ide"
    FILE_BROWSER = "files"
    TERMINAL = "terminal"


class Launcher(Protocol):
    """Anything that can open a path in an external tool."""

    def launch(self, kind: LaunchKind, path: Path | str) -> bool: ...


Command = tuple[str, ...]


@dataclass(frozen=True)
class LauncherCommands:
    """Command templates per launch kind.

    ``{path}`` in a template is replaced by the target path; every command
    also runs with the working copy as its current directory. ``terminals``
    are tried in order until one starts.
    """

    editor: Command
    ide: Command
    file_browser: Command
    terminals: tuple[Command, ...]

    @classmethod
    def for_platform(cls, platform: str | None = None) -> LauncherCommands:
        """Return the default commands for *platform* (``sys.platform``)."""
        platform = platform or sys.platform
        if platform.startswith("win"):
            return cls(
                editor=("code", PATH_PLACEHOLDER),
                ide=("cmd", "/c", "start", "", PATH_PLACEHOLDER),
                file_browser=("explorer.exe", PATH_PLACEHOLDER),
                terminals=(
                    ("wt.exe", "-d", PATH_PLACEHOLDER),
                    (
                        "powershell.exe",
                        "-NoExit",
                        "-Command",
                        f"Set-Location -LiteralPath '{PATH_PLACEHOLDER}'",
                    ),
                ),
            )
        if platform == "darwin":
            return cls(
                editor=("code", PATH_PLACEHOLDER),
                ide=("open", PATH_PLACEHOLDER),
                file_browser=("open", PATH_PLACEHOLDER),
                terminals=(
                    ("open", "-a", "iTerm", PATH_PLACEHOLDER),
                    ("open", "-a", "Terminal", PATH_PLACEHOLDER),
                ),
            )
        return cls(
            editor=("code", PATH_PLACEHOLDER),
            ide=("xdg-open", PATH_PLACEHOLDER),
            file_browser=("xdg-open", PATH_PLACEHOLDER),
            terminals=(
                ("gnome-terminal", f"--working-directory={PATH_PLACEHOLDER}"),
                ("x-terminal-emulator",),
            ),
        )


def _render(template: Sequence[str], path: Path) -> list[str]:
    """Substitute *path* into a command template."""
    return [part.replace(PATH_PLACEHOLDER, str(path)) for part in template]


def find_solution_file(path: Path | str) -> Path | None:
    """Return the first solution file under *path*, preferring ``.slnx``."""
    root = Path(path)
    if not root.is_dir():
        return None
    for pattern in SOLUTION_PATTERNS:
        matches = sorted(root.rglob(pattern))
        if matches:
            logger.debug("Found %s solution file: %s", pattern, matches[0])
            return matches[0]
    return None


def has_solution_file(path: Path | str) -> bool:
    """Return whether *path* contains a ``.slnx`` or ``.sln`` solution file."""
    try:
        return find_solution_file(path) is not None
    except OSError as exc:
        logger.error("Error checking for solution file in %s: %s", path, exc)
        return False


class ProcessLauncher:
    """Launch detached external processes for a working copy."""

    def __init__(
        self,
        commands: LauncherCommands | None = None,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self.commands = commands or LauncherCommands.for_platform()
        self._popen = popen

    def launch(self, kind: LaunchKind | str, path: Path | str) -> bool:
        """Open *path* with the tool for *kind*; return whether one started."""
        target = Path(path)
        try:
            kind = LaunchKind(kind)
            logger.info("Opening %s in %s", target, kind.value)
            if not target.is_dir():
                logger.warning("Directory does not exist: %s", target)
                return False
            if kind is LaunchKind.TERMINAL:
                return self._launch_terminal(target)
            if kind is LaunchKind.IDE:
                solution = find_solution_file(target)
                if solution is None:
                    logger.debug("No solution file found, opening folder")
                return self._start(self.commands.ide, solution or target, cwd=target)
            if kind is LaunchKind.EDITOR:
                return self._start(self.commands.editor, target, cwd=target)
            return self._start(self.commands.file_browser, target, cwd=target)
        except Exception:
            logger.exception("Error opening %s in %s", target, kind)
            return False

    def _launch_terminal(self, path: Path) -> bool:
        for template in self.commands.terminals:
            if self._start(template, path, cwd=path):
                return True
            logger.debug("%s not available, trying next terminal", template[0])
        logger.warning("No terminal could be started for %s", path)
        return False

    def _start(self, template: Sequence[str], path: Path, *, cwd: Path) -> bool:
        argv = _render(template, path)
        argv[0] = shutil.which(argv[0]) or argv[0]
        try:
            self._popen(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            logger.debug("Failed to start %s: %s", template[0], exc)
            return False
        return True
