"""
extpolicy Allow-Map Stores

An allow-map lives either in the user's settings.json (user context) or in
the machine-wide policy key in the registry (system context). Both stores
load leniently: corrupt or missing data becomes an empty map plus a warning,
never an exception.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

ALLOWED_KEY = "extensions.allowed"
AUTO_UPDATE_KEY = "extensions.autoUpdate"
AUTO_CHECK_UPDATES_KEY = "extensions.autoCheckUpdates"
IGNORE_RECOMMENDATIONS_KEY = "extensions.ignoreRecommendations"
GALLERY_ENABLED_KEY = "extensions.gallery.enabled"


class PolicyContext(str, Enum):
    """Scope a policy is applied to."""

    USER = "user"
    SYSTEM = "system"


@dataclass
class UpdateSettings:
    """Auto-update toggles requested for this run. None = not specified."""

    auto_update: Optional[bool] = None
    auto_check_updates: Optional[bool] = None
    gallery_enabled: Optional[bool] = None


@dataclass
class LoadedPolicy:
    """Result of loading an allow-map from a store."""

    allow_map: dict[str, bool] = field(default_factory=dict)
    # User context: the full settings document. System context: unused.
    carrier: Any = None
    warnings: list[str] = field(default_factory=list)
    # Raw bytes of a settings file that cannot be written back as-is
    # (undecodable, unparseable, or with dropped entries), kept for a backup
    corrupt_source: Optional[bytes] = None


class AllowMapStore:
    """Interface shared by the user and system stores."""

    context: PolicyContext

    def load(self) -> LoadedPolicy:
        raise NotImplementedError

    def persist(
        self,
        allow_map: dict[str, bool],
        loaded: LoadedPolicy,
        updates: Optional[UpdateSettings] = None,
    ) -> None:
        raise NotImplementedError


def coerce_allow_map(value: Any, source: str, warnings: list[str]) -> dict[str, bool]:
    """
    Turn a raw decoded value into an allow-map.

    Non-object values and non-boolean entries are dropped with a warning.
    Keys differing only in case collapse to the last one seen.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        warnings.append(f"{source}: expected an object, got {type(value).__name__}")
        return {}

    allow_map = {}
    for key, allowed in value.items():
        if not isinstance(allowed, bool):
            warnings.append(f"{source}: ignored non-boolean entry for '{key}'")
            continue
        key = str(key)
        folded = key.casefold()
        for existing in [k for k in allow_map if k.casefold() == folded]:
            warnings.append(f"{source}: '{existing}' duplicates '{key}', keeping '{key}'")
            del allow_map[existing]
        allow_map[key] = allowed
    return allow_map
