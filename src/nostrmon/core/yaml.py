"""YAML loading and dumping for nostrmon.

Service configuration and the persisted settings record are both YAML.
Loading goes through ``yaml.safe_load`` so that tags in an edited file can
never instantiate Python objects; dumping goes through ``yaml.safe_dump``
with ``allow_unicode`` so non-ASCII search patterns stay readable.

Examples:
    ```python
    from nostrmon.core.yaml import dump_yaml, load_yaml

    config = load_yaml("config/monitor.yaml")
    text = dump_yaml({"relays": ["wss://yabu.me"], "searchPattern": "テスト"})
    ```

See Also:
    [BaseService.from_yaml()][nostrmon.core.base_service.BaseService.from_yaml]:
        Service factory that delegates to [load_yaml()][nostrmon.core.yaml.load_yaml].
    [SettingsStore][nostrmon.services.common.settings.SettingsStore]: Persists
        the settings record with [dump_yaml()][nostrmon.core.yaml.dump_yaml].
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML mapping from a file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        The parsed mapping, or an empty dict if the file holds no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a mapping in {config_path}, got {type(data).__name__}"
        )
    return data


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize a mapping to YAML text, preserving key order and unicode."""
    return yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)
