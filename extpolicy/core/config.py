"""
extpolicy Configuration Manager

Handles loading, saving, and validating configuration.
Paths to the backing stores and the `code` CLI live here so that the
policy logic itself never has to guess where things are installed.
"""

import json
import os
import sys
from dataclasses import dataclass, field, asdict
from typing import Optional
from pathlib import Path


# Default config location: ~/.extpolicy/config.json
CONFIG_DIR = Path.home() / ".extpolicy"
CONFIG_FILE = CONFIG_DIR / "config.json"
LOG_DIR = CONFIG_DIR / "logs"
LOG_FILE = LOG_DIR / "extpolicy.log"


def default_user_settings_path() -> str:
    """Per-user VS Code settings.json for the current platform."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return str(base / "Code" / "User" / "settings.json")


def default_system_install_dirs() -> list[str]:
    """Directories whose presence means VS Code is installed machine-wide."""
    if sys.platform != "win32":
        return []
    dirs = []
    for var in ("ProgramFiles", "ProgramFiles(x86)"):
        root = os.environ.get(var)
        if root:
            dirs.append(str(Path(root) / "Microsoft VS Code"))
    return dirs


def default_code_cli_candidates() -> list[str]:
    """Well-known locations of the `code` command line launcher."""
    if sys.platform == "win32":
        candidates = []
        for var in ("ProgramFiles", "ProgramFiles(x86)"):
            root = os.environ.get(var)
            if root:
                candidates.append(str(Path(root) / "Microsoft VS Code" / "bin" / "code.cmd"))
        local = os.environ.get("LOCALAPPDATA")
        if local:
            candidates.append(
                str(Path(local) / "Programs" / "Microsoft VS Code" / "bin" / "code.cmd")
            )
        return candidates
    if sys.platform == "darwin":
        return [
            "/Applications/Visual Studio Code.app/Contents/Resources/app/bin/code",
            "/usr/local/bin/code",
        ]
    return ["/usr/bin/code", "/usr/share/code/bin/code", "/snap/bin/code"]


@dataclass
class PathsConfig:
    """Where the backing stores and the extension manager live."""

    user_settings_path: str = field(default_factory=default_user_settings_path)

    # If none of these exist, a "system" request falls back to the user store
    # (unless force_system is set)
    system_install_dirs: list[str] = field(default_factory=default_system_install_dirs)

    # Probed in order; PATH lookup is tried last
    code_cli_candidates: list[str] = field(default_factory=default_code_cli_candidates)


@dataclass
class SystemPolicyConfig:
    """Machine-wide policy location in the registry."""

    hive: str = "HKEY_LOCAL_MACHINE"
    key_path: str = r"SOFTWARE\Policies\Microsoft\VSCode"
    allowed_value_name: str = "AllowedExtensions"


@dataclass
class EnforcementConfig:
    """How the allow-map is applied to installed extensions."""

    # False: any matching "true" rule wins over an explicit "false" entry.
    # True: an explicit "false" for the exact identifier always denies.
    explicit_deny_overrides: bool = False

    # Seconds to wait for the `code` CLI. None = wait forever.
    cli_timeout: Optional[float] = None

    # Warn when the editor is running during enforcement
    warn_if_editor_running: bool = True


@dataclass
class PolicyConfig:
    """Root configuration for extpolicy."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    system_policy: SystemPolicyConfig = field(default_factory=SystemPolicyConfig)
    enforcement: EnforcementConfig = field(default_factory=EnforcementConfig)

    def save(self, path: Optional[Path] = None):
        """Save configuration to JSON file."""
        config_path = path or CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "PolicyConfig":
        """Load configuration from JSON file. Creates default if not found."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            config = cls()
            config.save(config_path)
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            return cls(
                paths=PathsConfig(**data.get("paths", {})),
                system_policy=SystemPolicyConfig(**data.get("system_policy", {})),
                enforcement=EnforcementConfig(**data.get("enforcement", {})),
            )
        except (json.JSONDecodeError, TypeError, KeyError, AttributeError):
            # Corrupted config: use defaults
            config = cls()
            config.save(config_path)
            return config


def ensure_dirs():
    """Create necessary directories."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
