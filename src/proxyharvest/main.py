from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading

from colorama import Fore, Style, init as colorama_init

from .bloom import TimeWindowBloom
from .collectors import normalize_sources
from .config import HarvestConfig, load_config_from_env
from .orchestrator import HarvestReport, build_collectors, harvest
from .storage import ProxyStore, StorageError, decode_value
from .utils import load_source_file

logger = logging.getLogger("proxyharvest.main")


def _setup_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(threadName)s: %(message)s",
        )


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    CLI to override environment variables. Precedence: CLI > env > defaults.
    """
    ap = argparse.ArgumentParser(
        prog="proxyharvest",
        description="Harvest proxy candidates from configured pages into a local store.",
    )
    # Only set values when flags are provided (no default), so env/defaults remain if omitted.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db", dest="db_file", help="Override PROXYHARVEST_DB_FILE")
    common.add_argument("--bucket", dest="bucket", help="Override PROXYHARVEST_BUCKET")
    common.add_argument("--log-level", dest="log_level", help="Override PROXYHARVEST_LOG_LEVEL")

    sub = ap.add_subparsers(dest="command", required=True)
    hv = sub.add_parser("harvest", parents=[common], help="Collect from every source and store accepted proxies")
    hv.add_argument("--sources", dest="sources_file", help="Override PROXYHARVEST_SOURCES_FILE")
    hv.add_argument("--workers", dest="workers", type=int, help="Override PROXYHARVEST_WORKERS")
    hv.add_argument("--timeout", dest="fetch_timeout", type=float, help="Override PROXYHARVEST_FETCH_TIMEOUT (seconds)")
    hv.add_argument("--interval", dest="interval_seconds", type=float, help="Override PROXYHARVEST_INTERVAL_SECONDS")
    hv.add_argument("--loop", action="store_true", help="Keep harvesting every --interval seconds until interrupted")

    sub.add_parser("export", parents=[common], help="Print every stored proxy as JSON")
    sub.add_parser("random", parents=[common], help="Print one random stored proxy as JSON")
    return ap.parse_args(argv)


_CLI_TO_ENV = {
    "db_file": "PROXYHARVEST_DB_FILE",
    "bucket": "PROXYHARVEST_BUCKET",
    "log_level": "PROXYHARVEST_LOG_LEVEL",
    "sources_file": "PROXYHARVEST_SOURCES_FILE",
    "workers": "PROXYHARVEST_WORKERS",
    "fetch_timeout": "PROXYHARVEST_FETCH_TIMEOUT",
    "interval_seconds": "PROXYHARVEST_INTERVAL_SECONDS",
}


def _print_report(report: HarvestReport, size: int) -> None:
    color = Fore.GREEN if report.errors == 0 else Fore.YELLOW
    print(
        f"{color}harvest{Style.RESET_ALL} collectors={report.collectors} pages={report.pages} "
        f"accepted={report.accepted} stored={report.stored} dupes={report.duplicates} "
        f"errors={Fore.RED if report.errors else ''}{report.errors}{Style.RESET_ALL} size={size}"
    )


def _cmd_harvest(cfg: HarvestConfig, store: ProxyStore, loop: bool) -> int:
    try:
        specs = normalize_sources(load_source_file(cfg.sources_file))
    except (OSError, ValueError) as e:
        logger.error("sources: failed to read %s: %s", cfg.sources_file, e)
        return 1
    logger.info("sources: %d loaded from %s", len(specs), cfg.sources_file)

    stop = threading.Event()

    def handle_signal(signum, _frame):
        logger.info("signal %s received, shutting down", signum)
        stop.set()

    for sig in ("SIGINT", "SIGTERM"):
        if hasattr(signal, sig):
            signal.signal(getattr(signal, sig), handle_signal)

    seen = TimeWindowBloom(window_seconds=cfg.seen_window_seconds)
    cycle = 0
    while not stop.is_set():
        cycle += 1
        # fresh collectors each cycle; a cursor is single-pass
        collectors = build_collectors(specs, timeout=cfg.fetch_timeout, verify_ssl=cfg.verify_ssl)
        report = harvest(collectors, store, workers=cfg.workers, seen=seen, stop_event=stop)
        _print_report(report, store.count)
        if not loop:
            break
        logger.info("harvest: cycle %d done, next in %.0fs", cycle, cfg.interval_seconds)
        stop.wait(max(1.0, cfg.interval_seconds))
    return 0


def _cmd_export(store: ProxyStore) -> int:
    out = {k: decode_value(v) for k, v in sorted(store.get_all().items())}
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


def _cmd_random(store: ProxyStore) -> int:
    value = store.get_random_one()
    if value is None:
        print(f"{Fore.YELLOW}store is empty{Style.RESET_ALL}", file=sys.stderr)
        return 1
    print(json.dumps(decode_value(value), ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    colorama_init(autoreset=True)
    args = _parse_cli_args(argv)
    for attr, env_key in _CLI_TO_ENV.items():
        if getattr(args, attr, None) is not None:
            os.environ[env_key] = str(getattr(args, attr))

    cfg = load_config_from_env()
    _setup_logging(cfg.log_level)
    logger.debug(
        "config: db='%s' bucket='%s' sources='%s' workers=%d timeout=%.1fs",
        cfg.db_file, cfg.bucket, cfg.sources_file, cfg.workers, cfg.fetch_timeout,
    )

    try:
        store = ProxyStore(cfg.db_file, cfg.bucket)
    except StorageError as e:
        logger.error("store: %s", e)
        return 1

    with store:
        if args.command == "harvest":
            return _cmd_harvest(cfg, store, bool(args.loop))
        if args.command == "export":
            return _cmd_export(store)
        return _cmd_random(store)


if __name__ == "__main__":
    raise SystemExit(main())
