"""
User-context allow-map store: VS Code's per-user settings.json.

The whole settings document is carried through a run so that every setting
this tool does not own is written back untouched. Comments in the file are
not preserved on rewrite (see extpolicy.core.jsonc).
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from extpolicy.core.jsonc import parse_settings
from extpolicy.stores import (
    ALLOWED_KEY,
    AUTO_CHECK_UPDATES_KEY,
    AUTO_UPDATE_KEY,
    IGNORE_RECOMMENDATIONS_KEY,
    AllowMapStore,
    LoadedPolicy,
    PolicyContext,
    UpdateSettings,
    coerce_allow_map,
)

logger = logging.getLogger("extpolicy.stores.user")


class UserSettingsStore(AllowMapStore):
    """Reads and writes `extensions.allowed` inside a settings.json file."""

    context = PolicyContext.USER

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_bytes(self) -> bytes:
        """Read the settings file, creating an empty one if absent."""
        if not self.path.exists():
            logger.info(f"Settings file not found, creating {self.path}")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")
            return b""
        return self.path.read_bytes()

    def load(self) -> LoadedPolicy:
        loaded = LoadedPolicy()
        raw = self._read_bytes()

        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            loaded.warnings.append(f"{self.path}: not valid UTF-8 ({e}), treating as empty")
            loaded.carrier = {}
            loaded.corrupt_source = raw
            for message in loaded.warnings:
                logger.warning(message)
            return loaded

        document, warning = parse_settings(text)
        if warning:
            loaded.warnings.append(f"{self.path}: {warning}")
            if text.strip():
                loaded.corrupt_source = raw

        loaded.carrier = document
        before = len(loaded.warnings)
        loaded.allow_map = coerce_allow_map(
            document.get(ALLOWED_KEY), ALLOWED_KEY, loaded.warnings
        )
        # Dropped entries would vanish on the next write
        if len(loaded.warnings) > before:
            loaded.corrupt_source = raw

        for message in loaded.warnings:
            logger.warning(message)
        return loaded

    def persist(
        self,
        allow_map: dict[str, bool],
        loaded: LoadedPolicy,
        updates: Optional[UpdateSettings] = None,
    ) -> None:
        updates = updates or UpdateSettings()
        document = dict(loaded.carrier or {})

        document[ALLOWED_KEY] = dict(allow_map)
        document[AUTO_UPDATE_KEY] = _pick(updates.auto_update, document.get(AUTO_UPDATE_KEY))
        document[AUTO_CHECK_UPDATES_KEY] = _pick(
            updates.auto_check_updates, document.get(AUTO_CHECK_UPDATES_KEY)
        )
        document[IGNORE_RECOMMENDATIONS_KEY] = True

        if loaded.corrupt_source is not None:
            self._backup(loaded.corrupt_source)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(document, indent=4, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.info(f"Wrote {len(allow_map)} allow rule(s) to {self.path}")

    def _backup(self, raw: bytes) -> Path:
        """Keep the original settings file, byte for byte, before it gets overwritten."""
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}.bak")
        backup.write_bytes(raw)
        logger.warning(f"Backed up original settings to {backup}")
        return backup


def _pick(requested: Optional[bool], existing) -> bool:
    """Requested value, else the existing boolean, else VS Code's default (True)."""
    if requested is not None:
        return requested
    if isinstance(existing, bool):
        return existing
    return True
