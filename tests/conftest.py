"""Shared fakes: an in-memory registry key and a scripted extension manager."""

import pytest

from extpolicy.extensions.manager import ExtensionManager, UninstallResult
from extpolicy.stores.system_policy import RegistryBackend, SystemPolicyStore
from extpolicy.stores.user_settings import UserSettingsStore


class MemoryRegistry(RegistryBackend):
    """Registry key held in a dict: name -> (kind, data)."""

    def __init__(self, values=None, is_available=True, fail_writes=False):
        self.values = dict(values or {})
        self.is_available = is_available
        self.fail_writes = fail_writes

    def available(self):
        return self.is_available

    def read_value(self, name):
        entry = self.values.get(name)
        return None if entry is None else entry[1]

    def write_string(self, name, value):
        if self.fail_writes:
            raise PermissionError("Access is denied")
        self.values[name] = ("REG_SZ", value)

    def write_dword(self, name, value):
        if self.fail_writes:
            raise PermissionError("Access is denied")
        self.values[name] = ("REG_DWORD", value)


class FakeManager(ExtensionManager):
    """Extension manager that records uninstall calls."""

    def __init__(self, installed=None, failing=(), raising=(), is_available=True):
        self.installed = list(installed or [])
        self.failing = set(failing)
        self.raising = set(raising)
        self.is_available = is_available
        self.uninstalled = []

    def available(self):
        return self.is_available

    def list_installed(self):
        return list(self.installed)

    def uninstall(self, extension_id, force=True):
        self.uninstalled.append(extension_id)
        if extension_id in self.raising:
            raise RuntimeError("extension host crashed")
        if extension_id in self.failing:
            return UninstallResult(extension_id, False, "Extension is not installed")
        self.installed.remove(extension_id)
        return UninstallResult(extension_id, True, f"Extension '{extension_id}' was successfully uninstalled!")


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "Code" / "User" / "settings.json"


@pytest.fixture
def user_store(settings_path):
    return UserSettingsStore(settings_path)


@pytest.fixture
def registry():
    return MemoryRegistry()


@pytest.fixture
def system_store(registry):
    return SystemPolicyStore(registry)
