from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from collections.abc import Iterable
from contextlib import suppress
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from sharesniffer.application.use_cases.batch_check import StopSignal, parse_links
from sharesniffer.infrastructure.composition import build_engine
from sharesniffer.infrastructure.config import AppConfig, load_config
from sharesniffer.infrastructure.config.defaults import APP_VERSION
from sharesniffer.infrastructure.logging.setup import configure_logging
from sharesniffer.interfaces.api.check.presenter import present_result, present_support
from sharesniffer.interfaces.app import create_app

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sharesniffer",
        description="Check whether cloud-drive share links are still live.",
    )

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Disable the browser-based checkers.",
    )
    parser.add_argument(
        "--workers",
        default=None,
        type=int,
        help="Override the worker count.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Check one link and print its JSON result.")
    check.add_argument("url")

    batch = sub.add_parser("batch", help="Check every link in a file, one per line.")
    batch.add_argument("file", help="Input file; '-' reads stdin.")
    batch.add_argument(
        "--output",
        default=None,
        help="Write JSON lines here instead of stdout.",
    )

    sub.add_parser("support", help="List supported link prefixes.")
    sub.add_parser("version", help="Print the version.")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind host (overrides config).")
    serve.add_argument("--port", default=None, type=int, help="Bind port (overrides config).")

    return parser.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.no_browser:
        overrides["playwright_enabled"] = False
    if args.workers is not None:
        overrides["check_workers"] = args.workers
    if getattr(args, "host", None):
        overrides["api_host"] = args.host
    if getattr(args, "port", None):
        overrides["api_port"] = args.port
    return overrides


def _emit(payload: Any, stream: Any = None) -> None:
    print(json.dumps(payload, ensure_ascii=False), file=stream or sys.stdout)


def read_links(path: str) -> list[str]:
    """Read links from *path*, or stdin when *path* is ``-``."""
    if path == "-":
        return parse_links(sys.stdin)
    with Path(path).open(encoding="utf-8") as fh:
        return parse_links(fh)


async def _run_check(config: AppConfig, url: str) -> int:
    engine = build_engine(config)
    try:
        result = await engine.adapter.adapt(url)
    finally:
        await engine.aclose()
    _emit(present_result(result))
    return 0


async def _run_batch(config: AppConfig, urls: list[str], output: str | None) -> int:
    stop = StopSignal()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    engine = build_engine(config)
    try:
        report = await engine.batch.execute(urls, stop=stop)
    finally:
        await engine.aclose()

    out = Path(output).open("w", encoding="utf-8") if output else sys.stdout
    try:
        for result in report.results:
            _emit(present_result(result), out)
    finally:
        if out is not sys.stdout:
            out.close()
    _emit(report.summary(), sys.stderr)
    return 130 if stop.is_set else 0


def start(argv: Iterable[str] | None = None) -> int:
    """Process entrypoint: load config once, then dispatch the subcommand."""
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    if args.command == "version":
        print(APP_VERSION)
        return 0

    config = load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=_cli_overrides(args),
    )

    if args.command == "serve":
        log_config = configure_logging(config)
        uvicorn.run(
            create_app(config),
            host=config.api_host,
            port=config.api_port,
            log_config=log_config,
        )
        return 0

    # stdout carries the JSON results; logs go to stderr
    configure_logging(config, stdout_logs=False)

    if args.command == "support":
        engine = build_engine(config)
        _emit(present_support(engine.registry.support_table()))
        asyncio.run(engine.aclose())
        return 0

    if args.command == "check":
        return asyncio.run(_run_check(config, args.url))

    try:
        urls = read_links(args.file)
    except OSError as exc:
        log.error("batch_input_unreadable", path=args.file, error=str(exc))
        return 2
    return asyncio.run(_run_batch(config, urls, args.output))


if __name__ == "__main__":
    raise SystemExit(start())
