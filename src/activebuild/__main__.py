"""Command-line entry point for the rebuild watcher."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .actions import ActionDispatcher, load_collaborator
from .config import AppConfig, ConfigError, WatchConfig, load_config
from .monitor import WatchdogMonitor
from .session import WatchSession


def build_session(app_config: AppConfig) -> WatchSession:
    backend = load_collaborator(app_config.build)
    loader = load_collaborator(app_config.loader)
    monitor = WatchdogMonitor(app_config.watch.root_path)
    dispatcher = ActionDispatcher(backend, loader, root_dir=monitor.root_path())
    return WatchSession(
        monitor,
        dispatcher,
        layout=app_config.layout,
        debounce_ms=app_config.watch.debounce_ms,
        handles_renames=app_config.watch.handles_renames,
        low_priority=app_config.watch.low_priority,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild or reload project units as their files change")
    parser.add_argument(
        "--config",
        default="activebuild.yaml",
        help="Path to the YAML configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Directory to watch; overrides watch.root_path",
    )
    parser.add_argument(
        "--build-on-start",
        action="store_true",
        help="Run a full build before reacting to changes",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    config_path = Path(args.config)
    try:
        if config_path.exists() or args.root is None:
            app_config = load_config(config_path)
        else:
            app_config = AppConfig(watch=WatchConfig(root_path=Path(args.root).resolve()))
        if args.root is not None:
            app_config.watch.root_path = Path(args.root).resolve()
        session = build_session(app_config)
    except (ConfigError, RuntimeError, ValueError) as exc:
        logging.error("%s", exc)
        raise SystemExit(2) from exc

    if args.build_on_start:
        session.trigger_build_async()
    session.run()


if __name__ == "__main__":
    main()
