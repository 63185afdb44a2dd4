"""CLI entry point for nostrmon.

Runs the monitor daemon and edits the settings record. Edits go through
the same validation as a running monitor, so an invalid pattern or key is
never written. A running daemon picks up edits on its next cycle, or
immediately on ``SIGHUP``.

Examples:
    ```bash
    python -m nostrmon run --config config/monitor.yaml
    python -m nostrmon run --once --log-level DEBUG
    python -m nostrmon relays wss://yabu.me wss://relay-jp.shino3.net
    python -m nostrmon pattern 'テスト|nostr'
    python -m nostrmon secret            # prompts without echo
    python -m nostrmon secret --from-env NOSTR_SECRET
    python -m nostrmon secret --clear
    python -m nostrmon show
    ```

Exit codes:
    ``0`` success, ``1`` runtime or storage failure, ``2`` invalid input.
"""

import argparse
import asyncio
import getpass
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from nostrmon.core import start_metrics_server
from nostrmon.core.exceptions import ConfigurationError, InvalidSecretError
from nostrmon.core.logger import Logger, StructuredFormatter
from nostrmon.core.yaml import load_yaml
from nostrmon.services.common.settings import SettingsUpdate
from nostrmon.services.monitor import Monitor
from nostrmon.services.vault import VaultState
from nostrmon.utils.keys import load_secret_from_env


CONFIG_BASE = Path("config")
DEFAULT_CONFIG = CONFIG_BASE / "monitor.yaml"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2

logger = Logger("cli")


def build_monitor(config_path: Path, settings_path: Path | None = None) -> Monitor:
    """Create a monitor from its YAML config, overriding the settings path."""
    service_dict = _load_yaml_dict(config_path)
    if settings_path is not None:
        service_dict["settings_path"] = str(settings_path)
    return Monitor.from_dict(service_dict) if service_dict else Monitor()


async def run_monitor(monitor: Monitor, *, once: bool) -> int:
    """Run the monitor for one cycle or until a shutdown signal.

    ``SIGINT``/``SIGTERM`` request a graceful shutdown; ``SIGHUP`` reloads
    the settings file immediately.
    """
    if once:
        try:
            async with monitor:
                await monitor.run()
            logger.info("monitor_completed", **monitor.counters.as_dict())
            return EXIT_OK
        except Exception as e:  # CLI error boundary for one-shot mode
            logger.error("monitor_failed", error=str(e))
            return EXIT_FAILURE

    metrics_config = monitor.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        monitor.request_shutdown()

    def handle_reload() -> None:
        logger.info("reload_signal")
        monitor.request_reload()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)
    loop.add_signal_handler(signal.SIGHUP, handle_reload)

    try:
        async with monitor:
            await monitor.run_forever()
        return EXIT_OK
    except Exception as e:  # CLI error boundary for continuous mode
        logger.error("monitor_failed", error=str(e))
        return EXIT_FAILURE
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def set_relays(monitor: Monitor, urls: list[str]) -> int:
    await monitor.settings_manager.load()
    try:
        settings = await monitor.propose(SettingsUpdate(relays=urls))
    except ConfigurationError as e:
        logger.error("relays_rejected", error=str(e))
        return EXIT_INVALID
    except OSError as e:
        logger.error("settings_save_failed", error=str(e))
        return EXIT_FAILURE
    print(f"relays: {len(settings.relays)} saved")
    return EXIT_OK


async def set_pattern(monitor: Monitor, pattern: str) -> int:
    await monitor.settings_manager.load()
    try:
        await monitor.propose(SettingsUpdate(search_pattern=pattern))
    except ConfigurationError as e:
        logger.error("pattern_rejected", error=str(e))
        return EXIT_INVALID
    except OSError as e:
        logger.error("settings_save_failed", error=str(e))
        return EXIT_FAILURE
    print("pattern: saved" if pattern else "pattern: cleared (every note matches)")
    return EXIT_OK


async def set_secret(monitor: Monitor, plaintext: str) -> int:
    await monitor.settings_manager.load()
    try:
        stored = await monitor.vault.set_secret(plaintext)
    except InvalidSecretError as e:
        logger.error("secret_rejected", error=str(e))
        return EXIT_INVALID
    if not stored:
        return EXIT_FAILURE
    print("secret: saved" if plaintext else "secret: cleared")
    return EXIT_OK


async def show(monitor: Monitor) -> int:
    """Print the settings. The private key itself is never printed."""
    settings = await monitor.settings_manager.load()
    state = await monitor.vault.initialize(settings.encrypted_secret)

    print("relays:")
    for url in settings.relays:
        print(f"  {url}")
    print(f"pattern: {settings.search_pattern!r}")

    if state == VaultState.LOADED:
        keys = monitor.vault.keys()
        npub = keys.public_key().to_bech32() if keys is not None else "unparseable key"
        print(f"secret: stored ({npub})")
    elif settings.encrypted_secret:
        print("secret: stored but unreadable")
    else:
        print("secret: not set")
    return EXIT_OK


def _read_secret(args: argparse.Namespace) -> str:
    if args.clear:
        return ""
    if args.from_env:
        return load_secret_from_env(args.from_env)
    return getpass.getpass("Nostr private key (nsec1...): ")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrmon",
        description="Nostr relay monitor with an encrypted key vault",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Service config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="Settings file path (default: settings_path from the config)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run the monitor")
    run.add_argument(
        "--once",
        action="store_true",
        help="Run one cycle and exit (default: run continuously)",
    )

    relays = commands.add_parser("relays", help="Replace the relay list")
    relays.add_argument("urls", nargs="+", metavar="URL")

    pattern = commands.add_parser("pattern", help="Replace the search pattern")
    pattern.add_argument("pattern", metavar="REGEX")

    secret = commands.add_parser("secret", help="Store or clear the private key")
    source = secret.add_mutually_exclusive_group()
    source.add_argument("--clear", action="store_true", help="Remove the stored key")
    source.add_argument("--from-env", metavar="VAR", help="Read the key from an env var")

    commands.add_parser("show", help="Print the current settings")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install ``StructuredFormatter`` on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.debug("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the monitor, and dispatch."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        monitor = build_monitor(args.config, args.settings)
        if args.command == "run":
            return await run_monitor(monitor, once=args.once)
        if args.command == "relays":
            return await set_relays(monitor, args.urls)
        if args.command == "pattern":
            return await set_pattern(monitor, args.pattern)
        if args.command == "secret":
            try:
                plaintext = _read_secret(args)
            except ValueError as e:
                logger.error("secret_unavailable", error=str(e))
                return EXIT_INVALID
            return await set_secret(monitor, plaintext)
        return await show(monitor)
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
