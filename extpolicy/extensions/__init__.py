"""
extpolicy Extension Management

Lists and uninstalls VS Code extensions through the `code` CLI.
"""

from extpolicy.extensions.manager import (
    CodeCli,
    ExtensionManager,
    UninstallResult,
    editor_processes,
)

__all__ = ["CodeCli", "ExtensionManager", "UninstallResult", "editor_processes"]
