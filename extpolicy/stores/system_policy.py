"""
System-context allow-map store: the machine-wide VS Code policy key.

Layout under HKLM\\SOFTWARE\\Policies\\Microsoft\\VSCode:
    AllowedExtensions              REG_SZ     compact JSON {"id": true, ...}
    extensions.autoUpdate          REG_DWORD  0/1 (only when requested)
    extensions.autoCheckUpdates    REG_DWORD  0/1 (only when requested)
    extensions.gallery.enabled     REG_DWORD  0/1 (only when requested)

Writing requires an elevated process.
"""

import json
import logging
from typing import Any, Optional

from extpolicy.core.config import SystemPolicyConfig
from extpolicy.stores import (
    AUTO_CHECK_UPDATES_KEY,
    AUTO_UPDATE_KEY,
    GALLERY_ENABLED_KEY,
    AllowMapStore,
    LoadedPolicy,
    PolicyContext,
    UpdateSettings,
    coerce_allow_map,
)

logger = logging.getLogger("extpolicy.stores.system")


class RegistryBackend:
    """Value-level access to a single registry key."""

    def available(self) -> bool:
        raise NotImplementedError

    def read_value(self, name: str) -> Optional[Any]:
        """Return the value's data, or None if the key or value is absent."""
        raise NotImplementedError

    def write_string(self, name: str, value: str) -> None:
        raise NotImplementedError

    def write_dword(self, name: str, value: int) -> None:
        raise NotImplementedError


class WinRegistryBackend(RegistryBackend):
    """RegistryBackend over the stdlib winreg module (Windows only)."""

    def __init__(self, hive: str, key_path: str):
        self.hive = hive
        self.key_path = key_path

    @staticmethod
    def _winreg():
        try:
            import winreg
            return winreg
        except ImportError:
            return None

    def available(self) -> bool:
        return self._winreg() is not None

    def _hive(self, winreg):
        try:
            return getattr(winreg, self.hive)
        except AttributeError:
            raise OSError(f"Unknown registry hive: {self.hive}") from None

    def read_value(self, name: str) -> Optional[Any]:
        winreg = self._winreg()
        if winreg is None:
            return None
        try:
            with winreg.OpenKey(self._hive(winreg), self.key_path) as key:
                data, _ = winreg.QueryValueEx(key, name)
                return data
        except FileNotFoundError:
            return None

    def _write(self, name: str, kind_name: str, value) -> None:
        winreg = self._winreg()
        if winreg is None:
            raise OSError("Windows registry is not available on this platform")
        with winreg.CreateKeyEx(
            self._hive(winreg), self.key_path, 0, winreg.KEY_WRITE
        ) as key:
            winreg.SetValueEx(key, name, 0, getattr(winreg, kind_name), value)

    def write_string(self, name: str, value: str) -> None:
        self._write(name, "REG_SZ", value)

    def write_dword(self, name: str, value: int) -> None:
        self._write(name, "REG_DWORD", value)


class SystemPolicyStore(AllowMapStore):
    """Reads and writes the allow-map as a JSON string registry value."""

    context = PolicyContext.SYSTEM

    def __init__(self, backend: RegistryBackend, value_name: str = "AllowedExtensions"):
        self.backend = backend
        self.value_name = value_name

    @classmethod
    def from_config(cls, config: SystemPolicyConfig) -> "SystemPolicyStore":
        return cls(
            WinRegistryBackend(config.hive, config.key_path),
            value_name=config.allowed_value_name,
        )

    def load(self) -> LoadedPolicy:
        loaded = LoadedPolicy()

        if not self.backend.available():
            loaded.warnings.append("system policy store is not available on this platform")
        else:
            try:
                raw = self.backend.read_value(self.value_name)
            except OSError as e:
                raw = None
                loaded.warnings.append(f"could not read {self.value_name}: {e}")
            loaded.allow_map = self._decode(raw, loaded.warnings)

        for message in loaded.warnings:
            logger.warning(message)
        return loaded

    def _decode(self, raw: Any, warnings: list[str]) -> dict[str, bool]:
        if raw is None:
            return {}
        if not isinstance(raw, str):
            warnings.append(f"{self.value_name}: expected a string value, got {type(raw).__name__}")
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as e:
            warnings.append(f"{self.value_name}: value is not valid JSON: {e}")
            return {}
        return coerce_allow_map(data, self.value_name, warnings)

    def persist(
        self,
        allow_map: dict[str, bool],
        loaded: LoadedPolicy,
        updates: Optional[UpdateSettings] = None,
    ) -> None:
        updates = updates or UpdateSettings()

        payload = json.dumps(allow_map, separators=(",", ":"), ensure_ascii=False)
        self.backend.write_string(self.value_name, payload)

        flags = (
            (AUTO_UPDATE_KEY, updates.auto_update),
            (AUTO_CHECK_UPDATES_KEY, updates.auto_check_updates),
            (GALLERY_ENABLED_KEY, updates.gallery_enabled),
        )
        for name, value in flags:
            if value is not None:
                self.backend.write_dword(name, int(value))

        logger.info(f"Wrote {len(allow_map)} allow rule(s) to system policy {self.value_name}")
