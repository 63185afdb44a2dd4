"""
Unit tests for services.common.settings module.

Tests:
- Settings defaults, relay parsing and normalization, aliases, validation
- SettingsUpdate change extraction and secret redaction
- SettingsStore atomic YAML persistence
- SettingsManager load/reload/update semantics
"""

import stat
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from nostrmon.core.exceptions import ConfigurationError, InvalidPatternError
from nostrmon.services.common.settings import (
    DEFAULT_RELAYS,
    DEFAULT_SEARCH_PATTERN,
    Settings,
    SettingsManager,
    SettingsStore,
    SettingsUpdate,
)


# =============================================================================
# Settings Tests
# =============================================================================


class TestSettingsDefaults:
    """Defaults applied to missing fields."""

    def test_defaults(self):
        settings = Settings()
        assert settings.relays == DEFAULT_RELAYS
        assert settings.search_pattern == DEFAULT_SEARCH_PATTERN == "テスト"
        assert settings.encrypted_secret is None

    def test_default_relays(self):
        assert DEFAULT_RELAYS == (
            "wss://kojira.io",
            "wss://yabu.me",
            "wss://relay-jp.shino3.net",
        )

    def test_partial_record(self):
        settings = Settings.model_validate({"searchPattern": "foo"})
        assert settings.relays == DEFAULT_RELAYS
        assert settings.search_pattern == "foo"

    def test_unknown_keys_ignored(self):
        settings = Settings.model_validate({"theme": "dark"})
        assert settings == Settings()


class TestSettingsRelays:
    """Relay list parsing and validation."""

    def test_list(self):
        settings = Settings(relays=["wss://r1.example", "wss://r2.example"])
        assert settings.relays == ("wss://r1.example", "wss://r2.example")

    def test_newline_separated_text(self):
        settings = Settings(relays="  wss://r1.example \n\n wss://r2.example\n   \n")
        assert settings.relays == ("wss://r1.example", "wss://r2.example")

    def test_normalized(self):
        settings = Settings(relays=["WSS://R1.Example:443/"])
        assert settings.relays == ("wss://r1.example",)

    def test_order_and_duplicates_kept(self):
        settings = Settings(relays=["wss://b.example", "wss://a.example", "wss://b.example"])
        assert settings.relays == ("wss://b.example", "wss://a.example", "wss://b.example")

    def test_empty_list_rejected(self):
        with pytest.raises(ValidationError):
            Settings(relays=[])

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            Settings(relays="\n  \n")

    @pytest.mark.parametrize("url", ["https://r1.example", "wss://r1.example/?q=1", "r1.example"])
    def test_invalid_url_rejected(self, url):
        with pytest.raises(ValidationError):
            Settings(relays=[url])


class TestSettingsPatternAndSecret:
    """search_pattern and encrypted_secret fields."""

    def test_invalid_pattern(self):
        with pytest.raises(InvalidPatternError):
            Settings(search_pattern="(")

    def test_empty_pattern_allowed(self):
        assert Settings(search_pattern="").search_pattern == ""

    def test_aliases(self):
        settings = Settings.model_validate(
            {"relays": ["wss://r1.example"], "searchPattern": "foo", "encryptedSecret": "QUJD"}
        )
        assert settings.search_pattern == "foo"
        assert settings.encrypted_secret == "QUJD"

    def test_field_names_accepted(self):
        settings = Settings(search_pattern="foo", encrypted_secret="QUJD")
        assert settings.search_pattern == "foo"

    def test_blank_secret_is_none(self):
        assert Settings(encrypted_secret="").encrypted_secret is None

    def test_secret_not_in_repr(self):
        assert "QUJD" not in repr(Settings(encrypted_secret="QUJD"))

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Settings().search_pattern = "x"  # type: ignore[misc]


class TestSettingsRecord:
    """to_record() and subscription_differs()."""

    def test_to_record_uses_aliases(self):
        record = Settings(relays=["wss://r1.example"], search_pattern="foo", encrypted_secret="QUJD")
        assert record.to_record() == {
            "relays": ["wss://r1.example"],
            "searchPattern": "foo",
            "encryptedSecret": "QUJD",
        }

    def test_to_record_omits_missing_secret(self):
        assert "encryptedSecret" not in Settings().to_record()

    def test_subscription_differs_on_relays(self):
        a = Settings(relays=["wss://r1.example"])
        b = Settings(relays=["wss://r2.example"])
        assert a.subscription_differs(b)

    def test_subscription_differs_on_pattern(self):
        assert Settings(search_pattern="a").subscription_differs(Settings(search_pattern="b"))

    def test_secret_change_does_not_affect_subscription(self):
        assert not Settings().subscription_differs(Settings(encrypted_secret="QUJD"))


# =============================================================================
# SettingsUpdate Tests
# =============================================================================


class TestSettingsUpdate:
    """SettingsUpdate."""

    def test_empty(self):
        assert SettingsUpdate().settings_changes == {}

    def test_changes(self):
        update = SettingsUpdate(relays=["wss://r1.example"], search_pattern="", secret="nsec1x")
        assert update.settings_changes == {"relays": ["wss://r1.example"], "search_pattern": ""}

    def test_secret_hidden_from_repr(self):
        assert "nsec1secret" not in repr(SettingsUpdate(secret="nsec1secret"))


# =============================================================================
# SettingsStore Tests
# =============================================================================


class TestSettingsStore:
    """SettingsStore persistence."""

    async def test_missing_file(self, settings_store):
        assert await settings_store.load() is None

    async def test_save_and_load(self, settings_store):
        record = {"relays": ["wss://r1.example"], "searchPattern": "foo"}
        await settings_store.save(record)
        assert await settings_store.load() == record

    async def test_unicode_written_literally(self, settings_store, settings_path):
        await settings_store.save({"searchPattern": "テスト"})
        assert "テスト" in settings_path.read_text(encoding="utf-8")

    async def test_creates_parent_directories(self, tmp_path):
        store = SettingsStore(tmp_path / "nested" / "dir" / "settings.yaml")
        await store.save({"searchPattern": "x"})
        assert store.path.exists()

    async def test_owner_only_permissions(self, settings_store, settings_path):
        await settings_store.save({"searchPattern": "x"})
        assert stat.S_IMODE(settings_path.stat().st_mode) == 0o600

    async def test_no_temp_file_left(self, settings_store, tmp_path):
        await settings_store.save({"searchPattern": "x"})
        assert [p.name for p in tmp_path.iterdir()] == ["settings.yaml"]

    async def test_failed_write_keeps_previous(self, settings_store, settings_path, tmp_path):
        await settings_store.save({"searchPattern": "old"})
        with patch("nostrmon.services.common.settings.os.replace", side_effect=OSError("disk")):
            with pytest.raises(OSError):
                await settings_store.save({"searchPattern": "new"})
        assert await settings_store.load() == {"searchPattern": "old"}
        assert [p.name for p in tmp_path.iterdir()] == ["settings.yaml"]

    async def test_invalid_yaml(self, settings_store, settings_path):
        settings_path.write_text("- not\n- a mapping\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            await settings_store.load()


# =============================================================================
# SettingsManager Tests
# =============================================================================


class TestSettingsManagerLoad:
    """load() and reload()."""

    async def test_defaults_when_missing(self, settings_manager):
        settings = await settings_manager.load()
        assert settings == Settings()
        assert settings_manager.settings is settings

    async def test_merges_defaults(self, settings_manager, settings_path):
        settings_path.write_text("searchPattern: foo\n", encoding="utf-8")
        settings = await settings_manager.load()
        assert settings.search_pattern == "foo"
        assert settings.relays == DEFAULT_RELAYS

    async def test_invalid_record(self, settings_manager, settings_path):
        settings_path.write_text("relays: []\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            await settings_manager.load()

    async def test_invalid_stored_pattern(self, settings_manager, settings_path):
        settings_path.write_text("searchPattern: '('\n", encoding="utf-8")
        with pytest.raises(InvalidPatternError):
            await settings_manager.load()

    async def test_reload_returns_previous_and_current(self, settings_manager, settings_path):
        await settings_manager.load()
        settings_path.write_text("searchPattern: bar\n", encoding="utf-8")
        previous, current = await settings_manager.reload()
        assert previous.search_pattern == DEFAULT_SEARCH_PATTERN
        assert current.search_pattern == "bar"
        assert settings_manager.settings is current

    async def test_reload_failure_keeps_current(self, settings_manager, settings_path):
        await settings_manager.load()
        settings_path.write_text("relays: [http://bad.example]\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            await settings_manager.reload()
        assert settings_manager.settings == Settings()


class TestSettingsManagerUpdate:
    """update()."""

    async def test_persists_then_applies(self, settings_manager, settings_store):
        await settings_manager.load()
        updated = await settings_manager.update(search_pattern="foo")
        assert settings_manager.settings is updated
        assert (await settings_store.load())["searchPattern"] == "foo"

    async def test_keeps_other_fields(self, settings_manager, settings_store):
        await settings_manager.update(relays=["wss://r1.example"])
        await settings_manager.update(search_pattern="foo")
        record = await settings_store.load()
        assert record == {"relays": ["wss://r1.example"], "searchPattern": "foo"}

    async def test_invalid_pattern_not_persisted(self, settings_manager, settings_store):
        await settings_manager.update(search_pattern="foo")
        with pytest.raises(InvalidPatternError):
            await settings_manager.update(search_pattern="(")
        assert settings_manager.settings.search_pattern == "foo"
        assert (await settings_store.load())["searchPattern"] == "foo"

    async def test_invalid_relay_not_persisted(self, settings_manager, settings_store):
        with pytest.raises(ConfigurationError):
            await settings_manager.update(relays=["http://bad.example"])
        assert await settings_store.load() is None
        assert settings_manager.settings == Settings()

    async def test_save_failure_leaves_memory(self, settings_manager, settings_store):
        with patch.object(settings_store, "save", AsyncMock(side_effect=OSError("read-only"))):
            with pytest.raises(OSError):
                await settings_manager.update(search_pattern="foo")
        assert settings_manager.settings.search_pattern == DEFAULT_SEARCH_PATTERN

    async def test_clear_secret(self, settings_manager, settings_store):
        await settings_manager.update(encrypted_secret="QUJD")
        await settings_manager.update(encrypted_secret=None)
        assert settings_manager.settings.encrypted_secret is None
        assert "encryptedSecret" not in await settings_store.load()

    async def test_newline_relays(self, settings_manager):
        settings = await settings_manager.update(relays="wss://r1.example\nwss://r2.example\n")
        assert settings.relays == ("wss://r1.example", "wss://r2.example")
