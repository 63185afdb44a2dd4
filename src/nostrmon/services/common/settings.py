"""User settings: the persisted record, its store, and its single writer.

The record holds three keys, ``relays``, ``searchPattern`` and
``encryptedSecret``, and lives in a YAML file separate from the service
configuration so the CLI can edit it while the daemon runs.

* [Settings][nostrmon.services.common.settings.Settings] validates the
  record. Missing fields fall back to defaults.
* [SettingsStore][nostrmon.services.common.settings.SettingsStore] reads and
  atomically writes the file off the event loop.
* [SettingsManager][nostrmon.services.common.settings.SettingsManager]
  applies changes: validate, persist, then swap the in-memory copy. A
  rejected change leaves both the file and memory untouched.

Examples:
    ```python
    manager = SettingsManager(SettingsStore("data/settings.yaml"))
    await manager.load()
    await manager.update(search_pattern="nostr|ノストラ")
    ```
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Final

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from nostrmon.core.exceptions import ConfigurationError
from nostrmon.core.logger import Logger
from nostrmon.core.yaml import dump_yaml, load_yaml
from nostrmon.models.relay import normalize_relay_url
from nostrmon.utils.matching import validate_pattern


DEFAULT_RELAYS: Final[tuple[str, ...]] = (
    "wss://kojira.io",
    "wss://yabu.me",
    "wss://relay-jp.shino3.net",
)
DEFAULT_SEARCH_PATTERN: Final[str] = "テスト"


def _split_relays(value: Any) -> Any:
    """Accept one URL per line, trimming each and dropping blank lines."""
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    return value


def _normalize_relays(value: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(normalize_relay_url(url) for url in value)


RelayList = Annotated[
    tuple[str, ...],
    BeforeValidator(_split_relays),
    AfterValidator(_normalize_relays),
]


class Settings(BaseModel):
    """Validated settings record.

    Attributes:
        relays: Ordered, non-empty relay URLs. Duplicates are kept.
        search_pattern: Regular expression matched against event content.
            Empty matches every note.
        encrypted_secret: ``base64(iv || ciphertext || tag)`` of the private
            key, or ``None`` when no key is stored.

    Raises:
        pydantic.ValidationError: If a relay URL is invalid or the list is
            empty.
        InvalidPatternError: If ``search_pattern`` does not compile.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    relays: RelayList = Field(default=DEFAULT_RELAYS, min_length=1)
    search_pattern: str = Field(default=DEFAULT_SEARCH_PATTERN, alias="searchPattern")
    encrypted_secret: str | None = Field(default=None, alias="encryptedSecret", repr=False)

    @field_validator("search_pattern")
    @classmethod
    def _check_pattern(cls, v: str) -> str:
        validate_pattern(v)
        return v

    @field_validator("encrypted_secret")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v or None

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted key layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def subscription_differs(self, other: Settings) -> bool:
        """Whether switching to *other* requires a new subscription."""
        return self.relays != other.relays or self.search_pattern != other.search_pattern


@dataclass(frozen=True, slots=True)
class SettingsUpdate:
    """A proposed configuration change. ``None`` fields are left unchanged.

    Attributes:
        relays: Replacement relay list, or newline-separated text.
        search_pattern: Replacement search pattern.
        secret: Replacement private key, ``""`` to clear it. Never shown in
            ``repr``.
    """

    relays: Sequence[str] | str | None = None
    search_pattern: str | None = None
    secret: str | None = field(default=None, repr=False)

    @property
    def settings_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.relays is not None:
            changes["relays"] = self.relays
        if self.search_pattern is not None:
            changes["search_pattern"] = self.search_pattern
        return changes


class SettingsStore:
    """YAML file holding the settings record.

    Reads and writes run in ``asyncio.to_thread``. Writes go to a sibling
    temporary file that replaces the target with ``os.replace``, so a crash
    never leaves a half-written record.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> dict[str, Any] | None:
        """Return the stored record, or ``None`` if the file does not exist.

        Raises:
            ConfigurationError: If the file is not a YAML mapping.
        """
        return await asyncio.to_thread(self._read)

    async def save(self, record: dict[str, Any]) -> None:
        """Atomically replace the stored record.

        Raises:
            OSError: If the file cannot be written.
        """
        await asyncio.to_thread(self._write, dump_yaml(record))

    def _read(self) -> dict[str, Any] | None:
        if not self._path.exists():
            return None
        return load_yaml(self._path)

    def _write(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(f".{self._path.name}.tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise


class SettingsManager:
    """Single writer of the settings record.

    Holds the current [Settings][nostrmon.services.common.settings.Settings]
    in memory. Every accepted change is persisted before it becomes visible
    through [settings][nostrmon.services.common.settings.SettingsManager.settings].
    """

    def __init__(self, store: SettingsStore) -> None:
        self._store = store
        self._settings = Settings()
        self._lock = asyncio.Lock()
        self._logger = Logger("settings")

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def settings(self) -> Settings:
        """The settings currently in effect."""
        return self._settings

    async def load(self) -> Settings:
        """Load the stored record merged with defaults and make it current.

        Raises:
            ConfigurationError: If the stored record is invalid.
        """
        async with self._lock:
            self._settings = await self._read()
            self._logger.info(
                "settings_loaded",
                path=str(self._store.path),
                relays=len(self._settings.relays),
                has_secret=self._settings.encrypted_secret is not None,
            )
            return self._settings

    async def reload(self) -> tuple[Settings, Settings]:
        """Re-read the stored record.

        Returns:
            ``(previous, current)`` settings.

        Raises:
            ConfigurationError: If the stored record is invalid; the current
                settings are kept.
        """
        async with self._lock:
            previous = self._settings
            self._settings = await self._read()
            return previous, self._settings

    async def update(self, **changes: Any) -> Settings:
        """Validate, persist, then apply *changes* keyed by field name.

        Raises:
            InvalidPatternError: If ``search_pattern`` does not compile.
            ConfigurationError: If any other field is invalid.
            OSError: If the record cannot be written.
        """
        if "search_pattern" in changes:
            validate_pattern(changes["search_pattern"])
        async with self._lock:
            data = self._settings.model_dump()
            data.update(changes)
            new = _validate(data, source="update")
            await self._store.save(new.to_record())
            self._settings = new
            self._logger.info("settings_saved", fields=",".join(sorted(changes)))
            return new

    async def _read(self) -> Settings:
        record = await self._store.load()
        if record is None:
            return Settings()
        return _validate(record, source=str(self._store.path))


def _validate(data: dict[str, Any], source: str) -> Settings:
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings ({source}): {e}") from e
