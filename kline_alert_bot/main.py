from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from .config import load_config
from .runner import AlertRunner

log = logging.getLogger("main")


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _csv(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [x.strip() for x in value.split(",") if x.strip()]


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Kline Alert Bot - one indicator scan over every symbol/timeframe pair")
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("--symbols", help="Comma-separated symbols, replaces provider.symbols")
    p.add_argument("--timeframes", help="Comma-separated timeframes, replaces provider.timeframes")
    p.add_argument("--dry-run", action="store_true", help="Evaluate and log alerts; send nothing, keep the ledger untouched")
    p.add_argument("--log-level", help="Overrides app.log_level")
    return p


def main(argv=None) -> int:
    args = _parser().parse_args(argv)

    cfg = load_config(args.config)
    _setup_logging(args.log_level or cfg.app.log_level)

    runner = AlertRunner(cfg)

    async def _run():
        try:
            return await runner.run_once(
                symbols=_csv(args.symbols),
                timeframes=_csv(args.timeframes),
                dry_run=args.dry_run,
            )
        finally:
            await runner.close()

    try:
        events = asyncio.run(_run())
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        log.exception("fatal err=%s", e)
        return 1

    if args.dry_run:
        for event in events:
            log.info("dry_run_alert type=%s title=%s", event.type.value, event.title)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
