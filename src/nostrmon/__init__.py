r"""nostrmon -- Nostr relay monitor with an encrypted credential vault.

A background process that keeps a live subscription to a set of Nostr
relays, matches incoming text notes against a regular expression, and
raises alerts on matches. It also stores one private key (``nsec1...``)
encrypted at rest.

Imports flow strictly downward:

```text
        services         Monitor, CredentialVault, settings, alerts
         /    \
      core    utils      Base service, logging, metrics / cipher, transport
         \    /
         models          Frozen dataclasses
```

Note:
    For lightweight usage, import directly from subpackages::

        from nostrmon.models import Event
        from nostrmon.services import Monitor

    Top-level imports (``from nostrmon import Monitor``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrmon")

__all__ = [
    "BaseService",
    "ConfigT",
    "CredentialVault",
    "Event",
    "Logger",
    "Monitor",
    "MonitorConfig",
    "NetworkType",
    "Relay",
    "RelayNotification",
    "Settings",
    "SettingsUpdate",
    "VaultState",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("nostrmon.core", "BaseService"),
    "ConfigT": ("nostrmon.core", "ConfigT"),
    "Logger": ("nostrmon.core", "Logger"),
    "Event": ("nostrmon.models", "Event"),
    "NetworkType": ("nostrmon.models", "NetworkType"),
    "Relay": ("nostrmon.models", "Relay"),
    "RelayNotification": ("nostrmon.models", "RelayNotification"),
    "Settings": ("nostrmon.services.common", "Settings"),
    "SettingsUpdate": ("nostrmon.services.common", "SettingsUpdate"),
    "CredentialVault": ("nostrmon.services", "CredentialVault"),
    "Monitor": ("nostrmon.services", "Monitor"),
    "MonitorConfig": ("nostrmon.services", "MonitorConfig"),
    "VaultState": ("nostrmon.services", "VaultState"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'nostrmon' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
