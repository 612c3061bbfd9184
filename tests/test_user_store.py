"""
Tests for the user settings store.

The settings file belongs to the user. Everything this tool does not own
must survive a load/persist cycle, and a broken file must never stop a run.
"""

import json

from extpolicy.stores import UpdateSettings
from extpolicy.stores.user_settings import UserSettingsStore


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


# ─────────────────────────────────────────────────────────────
# Load
# ─────────────────────────────────────────────────────────────

class TestLoad:

    def test_missing_file_is_created(self, user_store, settings_path):
        assert not settings_path.exists()

        loaded = user_store.load()

        assert settings_path.exists()
        assert loaded.allow_map == {}
        assert loaded.carrier == {}
        # Empty content is a recoverable warning
        assert loaded.warnings
        assert loaded.corrupt_source is None

    def test_reads_allow_map(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(json.dumps({
            "editor.fontSize": 14,
            "extensions.allowed": {"microsoft": True, "evil.ext": False},
        }))

        loaded = user_store.load()

        assert loaded.allow_map == {"microsoft": True, "evil.ext": False}
        assert loaded.warnings == []

    def test_no_allowed_key_is_empty_map(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"editor.fontSize": 14}')

        loaded = user_store.load()

        assert loaded.allow_map == {}
        assert loaded.carrier == {"editor.fontSize": 14}

    def test_comments_are_tolerated(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(
            '{\n  // allow list\n  "extensions.allowed": {"a.b": true}, /* x */\n}'
        )

        assert user_store.load().allow_map == {"a.b": True}

    def test_corrupt_file_does_not_raise(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("not valid json {{{")

        loaded = user_store.load()

        assert loaded.allow_map == {}
        assert loaded.carrier == {}
        assert loaded.warnings
        assert loaded.corrupt_source == b"not valid json {{{"

    def test_non_object_allowed_value_ignored(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"extensions.allowed": ["microsoft"]}')

        loaded = user_store.load()

        assert loaded.allow_map == {}
        assert loaded.warnings

    def test_non_boolean_entries_dropped(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"extensions.allowed": {"a": true, "b": "yes", "c": 1}}')

        loaded = user_store.load()

        assert loaded.allow_map == {"a": True}
        assert len(loaded.warnings) == 2

    def test_utf8_bom_is_accepted(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(b'\xef\xbb\xbf{"extensions.allowed": {"a": true}}')

        assert user_store.load().allow_map == {"a": True}

    def test_invalid_utf8_does_not_raise(self, user_store, settings_path):
        raw = b'{"editor.fontSize": 12, "x": "\xff\xfe"}'
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(raw)

        loaded = user_store.load()

        assert loaded.allow_map == {}
        assert loaded.carrier == {}
        assert any("UTF-8" in w for w in loaded.warnings)
        assert loaded.corrupt_source == raw

    def test_case_duplicate_keys_collapse(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"extensions.allowed": {"A.b": true, "a.B": false, "c": true}}')

        loaded = user_store.load()

        assert loaded.allow_map == {"a.B": False, "c": True}
        assert len(loaded.warnings) == 1


# ─────────────────────────────────────────────────────────────
# Persist
# ─────────────────────────────────────────────────────────────

class TestPersist:

    def test_unrelated_keys_survive_round_trip(self, user_store, settings_path):
        original = {
            "editor.fontSize": 14,
            "workbench.colorTheme": "Default Dark+",
            "files.exclude": {"**/.git": True, "**/node_modules": True},
            "terminal.integrated.env.windows": {"PATH": "C:\\tools"},
            "editor.rulers": [80, 120],
            "window.zoomLevel": 0.5,
            "extensions.allowed": {"old.ext": True},
        }
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(json.dumps(original))

        loaded = user_store.load()
        user_store.persist({"microsoft": True}, loaded)
        reloaded = user_store.load()

        for key, value in original.items():
            if key != "extensions.allowed":
                assert reloaded.carrier[key] == value
        assert reloaded.allow_map == {"microsoft": True}

    def test_owned_keys_written(self, user_store, settings_path):
        loaded = user_store.load()
        user_store.persist({"microsoft": True}, loaded)

        data = _read(settings_path)
        assert data["extensions.allowed"] == {"microsoft": True}
        assert data["extensions.autoUpdate"] is True
        assert data["extensions.autoCheckUpdates"] is True
        assert data["extensions.ignoreRecommendations"] is True

    def test_requested_update_flags_win(self, user_store, settings_path):
        loaded = user_store.load()
        user_store.persist({}, loaded, UpdateSettings(auto_update=False, auto_check_updates=False))

        data = _read(settings_path)
        assert data["extensions.autoUpdate"] is False
        assert data["extensions.autoCheckUpdates"] is False

    def test_existing_update_flags_kept_when_not_requested(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"extensions.autoUpdate": false}')

        loaded = user_store.load()
        user_store.persist({}, loaded)

        assert _read(settings_path)["extensions.autoUpdate"] is False

    def test_ignore_recommendations_always_forced(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"extensions.ignoreRecommendations": false}')

        loaded = user_store.load()
        user_store.persist({}, loaded)

        assert _read(settings_path)["extensions.ignoreRecommendations"] is True

    def test_carrier_not_mutated(self, user_store):
        loaded = user_store.load()
        user_store.persist({"a": True}, loaded)
        assert "extensions.allowed" not in loaded.carrier

    def test_corrupt_file_backed_up_before_overwrite(self, user_store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text('{"http.proxy": "http://proxy:8080"}')

        loaded = user_store.load()
        user_store.persist({"a": True}, loaded)

        backups = list(settings_path.parent.glob("settings.json.corrupt-*.bak"))
        assert len(backups) == 1
        assert backups[0].read_text() == '{"http.proxy": "http://proxy:8080"}'
        assert _read(settings_path)["extensions.allowed"] == {"a": True}

    def test_no_backup_for_valid_file(self, user_store, settings_path):
        loaded = user_store.load()
        user_store.persist({}, loaded)

        assert list(settings_path.parent.glob("*.bak")) == []

    def test_persist_creates_parent_directory(self, tmp_path):
        store = UserSettingsStore(tmp_path / "new" / "dir" / "settings.json")
        loaded = store.load()
        store.persist({"a": True}, loaded)
        assert _read(store.path)["extensions.allowed"] == {"a": True}

    def test_undecodable_file_backed_up_byte_for_byte(self, user_store, settings_path):
        raw = b'{"editor.fontSize": 12, "x": "\xff\xfe"}'
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(raw)

        loaded = user_store.load()
        user_store.persist({"microsoft": True}, loaded)

        backups = list(settings_path.parent.glob("settings.json.corrupt-*.bak"))
        assert len(backups) == 1
        assert backups[0].read_bytes() == raw
        assert _read(settings_path)["extensions.allowed"] == {"microsoft": True}

    def test_dropped_entries_backed_up(self, user_store, settings_path):
        original = '{"extensions.allowed": {"ms.x": "stable", "a": true}}'
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(original)

        loaded = user_store.load()
        user_store.persist(loaded.allow_map, loaded)

        backups = list(settings_path.parent.glob("settings.json.corrupt-*.bak"))
        assert len(backups) == 1
        assert json.loads(backups[0].read_text())["extensions.allowed"]["ms.x"] == "stable"
        assert _read(settings_path)["extensions.allowed"] == {"a": True}
