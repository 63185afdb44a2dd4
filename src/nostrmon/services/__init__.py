"""Service layer: the relay monitor and the credential vault.

Note:
    The monitor follows the shared lifecycle: instantiate, enter it as an
    async context manager (loads settings, initializes the vault, opens the
    subscription), then call ``run()`` for a single reconciliation cycle or
    ``run_forever()`` for continuous operation.

Examples:
    ```python
    from nostrmon.services import Monitor

    async with Monitor.from_yaml("config/monitor.yaml") as monitor:
        await monitor.run_forever()
    ```
"""

from .monitor import (
    Monitor,
    MonitorConfig,
)
from .vault import (
    CredentialVault,
    VaultState,
)


__all__ = [
    "CredentialVault",
    "Monitor",
    "MonitorConfig",
    "VaultState",
]
