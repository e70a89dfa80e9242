from __future__ import annotations

import argparse
import logging
import threading
from typing import List, Optional, Sequence

from . import config
from .client import ApiClient
from .control_server import ControlServer
from .errors import MonitorError
from .live_config import LiveSettings
from .monitor import StockMonitor
from .notifier import DiscordNotifier


def setup_logging(level_name: str = config.LOG_LEVEL) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_monitor(interval_seconds: float = config.CHECK_INTERVAL_SECONDS) -> StockMonitor:
    settings = LiveSettings.from_config()
    client = ApiClient(settings)
    notifier = DiscordNotifier(settings)
    return StockMonitor(client, notifier, settings, interval_seconds=interval_seconds)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PrivateSportShop stock monitor")
    parser.add_argument("--host", default=config.CONTROL_HOST, help="control server bind address")
    parser.add_argument("--port", type=int, default=config.PORT, help="control server port")
    parser.add_argument(
        "--interval", type=float, default=config.CHECK_INTERVAL_SECONDS,
        help="seconds between sweeps",
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    parser.add_argument(
        "--watch", action="append", default=[], metavar="ID[:SIZE,SIZE]",
        help="product to monitor at start-up; without sizes it watches any size (repeatable)",
    )
    return parser


def _parse_watch(value: str) -> tuple[str, List[str]]:
    product_id, _, sizes = value.partition(":")
    return product_id.strip(), [s.strip() for s in sizes.split(",") if s.strip()]


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Initialise the monitor and serve the control API until interrupted."""
    args = create_parser().parse_args(argv)
    setup_logging(args.log_level)
    config.validate()
    logger = logging.getLogger(__name__)

    monitor = build_monitor(args.interval)

    for value in args.watch:
        product_id, sizes = _parse_watch(value)
        try:
            result = monitor.add(product_id, watched_sizes=sizes or None, watch_any=not sizes)
            logger.info("%s", result.message)
        except MonitorError as e:
            logger.error("Could not start monitoring %s: %s", product_id, e)

    server = ControlServer(monitor, host=args.host, port=args.port)
    base_url = server.start()
    logger.info("PrivateSportShop stock monitor ready at %s (health: /health, /ping)", base_url)

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("Shutting down…")
    finally:
        monitor.scheduler.stop()
        server.stop()
        monitor.client.close()


if __name__ == "__main__":
    main()
