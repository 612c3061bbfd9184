"""
extpolicy Extension Manager

Thin wrapper over the VS Code `code` command line launcher:
  code --list-extensions
  code --uninstall-extension <id> --force

Process failures are reported as values, never raised. No timeout is applied
by default: a hung `code` process hangs the run (set
enforcement.cli_timeout in the config to bound it).
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psutil

logger = logging.getLogger("extpolicy.extensions.manager")

# Process names of a running VS Code instance
_EDITOR_PROCESS_NAMES = {"code.exe", "code"}


@dataclass
class UninstallResult:
    """Outcome of uninstalling one extension."""

    extension_id: str
    success: bool
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "extension_id": self.extension_id,
            "success": self.success,
            "detail": self.detail,
        }


class ExtensionManager:
    """Interface the enforcement engine drives."""

    def available(self) -> bool:
        raise NotImplementedError

    def list_installed(self) -> list[str]:
        raise NotImplementedError

    def uninstall(self, extension_id: str, force: bool = True) -> UninstallResult:
        raise NotImplementedError


class CodeCli(ExtensionManager):
    """ExtensionManager backed by the `code` CLI."""

    def __init__(self, candidates: Optional[list[str]] = None, timeout: Optional[float] = None):
        self.candidates = list(candidates or [])
        self.timeout = timeout
        self._path: Optional[str] = None
        self._probed = False

    def locate(self) -> Optional[str]:
        """Probe the well-known locations, then PATH. Cached after first call."""
        if self._probed:
            return self._path
        self._probed = True

        for candidate in self.candidates:
            if Path(candidate).is_file():
                self._path = candidate
                break
        else:
            self._path = shutil.which("code")

        if self._path:
            logger.debug(f"Using code CLI at {self._path}")
        else:
            logger.info("code CLI not found")
        return self._path

    def available(self) -> bool:
        return self.locate() is not None

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.locate(), *args],
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )

    def list_installed(self) -> list[str]:
        """Installed extension identifiers, or [] if the CLI fails."""
        if not self.available():
            return []
        try:
            result = self._run(["--list-extensions"])
        except subprocess.TimeoutExpired:
            logger.warning(f"code --list-extensions timed out after {self.timeout} seconds")
            return []
        except OSError as e:
            logger.warning(f"Failed to run code --list-extensions: {e}")
            return []

        if result.returncode != 0:
            logger.warning(
                f"code --list-extensions exited with {result.returncode}: "
                f"{(result.stderr or '').strip()[:500]}"
            )
            return []

        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def uninstall(self, extension_id: str, force: bool = True) -> UninstallResult:
        if not self.available():
            return UninstallResult(extension_id, False, "code CLI not found")

        args = ["--uninstall-extension", extension_id]
        if force:
            args.append("--force")

        try:
            result = self._run(args)
        except subprocess.TimeoutExpired:
            return UninstallResult(
                extension_id, False, f"timed out after {self.timeout} seconds"
            )
        except OSError as e:
            return UninstallResult(extension_id, False, str(e))

        output = (result.stdout or "").strip() or (result.stderr or "").strip()
        return UninstallResult(extension_id, result.returncode == 0, output[:500])


def editor_processes() -> list[dict]:
    """
    Running VS Code processes.

    Uninstalling while the editor runs only takes effect after a restart.
    """
    found = []
    for proc in psutil.process_iter(["pid", "name"]):
        try:
            name = (proc.info["name"] or "").lower()
            if name in _EDITOR_PROCESS_NAMES:
                found.append({"pid": proc.info["pid"], "name": proc.info["name"]})
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found
