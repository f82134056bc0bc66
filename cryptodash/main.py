from __future__ import annotations

import argparse
import asyncio
import logging

from cryptodash.core.config import load_config
from cryptodash.core.logging import safe_json, setup_logging
from cryptodash.dashboard import build_dashboard

logger = logging.getLogger(__name__)


async def run_headless(config_path: str = "config.toml", report_every_s: float = 10.0, duration_s: float | None = None) -> None:
    config = load_config(config_path)
    dashboard = build_dashboard(config)
    await dashboard.start()
    if not dashboard.selection.coins:
        logger.warning("No tracked coins in %s; nothing to poll", config.storage.tracked_coins_path)
    loop = asyncio.get_running_loop()
    started = loop.time()
    try:
        while duration_s is None or loop.time() - started < duration_s:
            await asyncio.sleep(report_every_s)
            snap = dashboard.state.prices
            logger.info("prices %s", safe_json({"current": dict(snap.current), "last_updated": snap.last_updated}))
    finally:
        await dashboard.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless crypto dashboard price poller")
    parser.add_argument("--config", default="config.toml")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--report-every", type=float, default=10.0)
    parser.add_argument("--duration", type=float, default=None)
    args = parser.parse_args()
    config = load_config(args.config)
    setup_logging(args.log_level or config.log_level)
    try:
        asyncio.run(run_headless(args.config, report_every_s=args.report_every, duration_s=args.duration))
    except KeyboardInterrupt:
        logger.info("interrupted")


if __name__ == "__main__":
    main()
