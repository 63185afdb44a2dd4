"""
Pytest configuration and shared fixtures for nostrmon tests.

Provides:
- FakeTransport, an in-memory RelayTransport that records calls
- RecordingAlertSink, an AlertSink that keeps every message
- Settings store/manager fixtures backed by a temporary file
- Event factories for model objects and mocked nostr-sdk events
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any
from unittest.mock import MagicMock

import pytest

from nostrmon.models import Event, RelayNotification, Subscription, SubscriptionFilter
from nostrmon.services.common.settings import SettingsManager, SettingsStore
from nostrmon.services.monitor import Monitor, MonitorConfig, ProcessingConfig
from nostrmon.services.vault import CredentialVault


# =============================================================================
# Test Constants
# =============================================================================

# Fixed timestamp for deterministic time-based tests
FIXED_TIME = 1_700_000_000.0

# Fixed AES key so tests skip the PBKDF2 derivation
TEST_KEY = bytes(range(32))

# Valid secp256k1 test key (DO NOT USE IN PRODUCTION)
VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)

AUTHOR_HEX = "abcdef" + "0" * 58


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fakes
# ============================================================================


class FakeTransport:
    """In-memory RelayTransport.

    Records every ``subscribe``/``close`` call in order and tracks which
    subscriptions are open. Set ``fail_with`` to make ``subscribe`` raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.subscriptions: list[Subscription] = []
        self.open: dict[str, Subscription] = {}
        self.channel: asyncio.Queue[RelayNotification] | None = None
        self.fail_with: Exception | None = None

    async def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[SubscriptionFilter],
        channel: asyncio.Queue[RelayNotification],
    ) -> Subscription:
        self.calls.append(("subscribe", tuple(relays)))
        if self.fail_with is not None:
            raise self.fail_with
        subscription = Subscription(relays=tuple(relays), filters=tuple(filters))
        self.subscriptions.append(subscription)
        self.open[subscription.id] = subscription
        self.channel = channel
        return subscription

    async def close(self, relays: Sequence[str]) -> None:
        self.calls.append(("close", tuple(relays)))
        wanted = set(relays)
        for sub_id in [k for k, s in self.open.items() if wanted & set(s.relays)]:
            del self.open[sub_id]


class RecordingAlertSink:
    """AlertSink that keeps every message; ``result`` controls the return value."""

    def __init__(self, result: bool = True) -> None:
        self.messages: list[str] = []
        self.result = result
        self.closed = False

    async def notify(self, message: str) -> bool:
        self.messages.append(message)
        return self.result

    async def close(self) -> None:
        self.closed = True


# ============================================================================
# Factories
# ============================================================================


def make_event(
    content: str = "hello",
    *,
    event_id: str = "e" * 64,
    author_id: str = AUTHOR_HEX,
    created_at: int = int(FIXED_TIME) + 10,
    kind: int = 1,
) -> Event:
    return Event(
        id=event_id,
        author_id=author_id,
        content=content,
        created_at=created_at,
        kind=kind,
    )


def make_mock_nostr_event(
    content: str = "hello",
    *,
    event_id: str = "e" * 64,
    author_id: str = AUTHOR_HEX,
    created_at: int = int(FIXED_TIME) + 10,
    kind: int = 1,
) -> MagicMock:
    """Mock nostr_sdk.Event exposing the accessors Event.from_nostr reads."""
    mock_event = MagicMock()
    mock_event.id.return_value.to_hex.return_value = event_id
    mock_event.author.return_value.to_hex.return_value = author_id
    mock_event.created_at.return_value.as_secs.return_value = created_at
    mock_event.kind.return_value.as_u16.return_value = kind
    mock_event.content.return_value = content
    return mock_event


def make_config(**processing: Any) -> MonitorConfig:
    """Monitor config with metrics off and no restart debounce."""
    processing.setdefault("restart_debounce", 0)
    return MonitorConfig(processing=ProcessingConfig(**processing))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.yaml"


@pytest.fixture
def settings_store(settings_path) -> SettingsStore:
    return SettingsStore(settings_path)


@pytest.fixture
def settings_manager(settings_store: SettingsStore) -> SettingsManager:
    return SettingsManager(settings_store)


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def vault(settings_manager: SettingsManager, alert_sink: RecordingAlertSink) -> CredentialVault:
    return CredentialVault(settings_manager, alert_sink, key=TEST_KEY)


@pytest.fixture
async def monitor(
    settings_manager: SettingsManager,
    fake_transport: FakeTransport,
    alert_sink: RecordingAlertSink,
    vault: CredentialVault,
):
    """Monitor wired to fakes with a fixed clock; stopped on teardown."""
    service = Monitor(
        make_config(),
        settings=settings_manager,
        transport=fake_transport,
        alert_sink=alert_sink,
        vault=vault,
        clock=lambda: FIXED_TIME,
    )
    yield service
    await service.stop()
