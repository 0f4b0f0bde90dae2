# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import colorlog
from dotenv import load_dotenv
from rich.console import Console

from evolution_bridge import BridgeSettings, LaneBridge
from evolution_bridge.config import CONSENT_SCOPES
from evolution_bridge.reference import (
    LocalNavigationAdapter,
    ReferenceConsentProvider,
    TurnScheduler,
)
from evolution_bridge.sinks import LoggingHapticSink, WebhookUiSink

_console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evolution Turn Bridge")
    parser.add_argument("--ledger-url", type=str, help="Inner-ledger JSON-RPC WebSocket URL.")
    parser.add_argument("--context-url", type=str, help="Public-space context socket URL.")
    parser.add_argument("--host-id", type=str, help="Host id stamped into evolution frames.")
    parser.add_argument(
        "--turn-period", type=float, help="Seconds between evolution turns (default 180)."
    )
    parser.add_argument(
        "--max-tokens", type=int, help="Candidate tokens requested per turn (default 4)."
    )
    parser.add_argument(
        "--consent-scope",
        choices=CONSENT_SCOPES,
        help="Navigation consent scope granted at startup.",
    )
    parser.add_argument("--ui-webhook", type=str, help="POST UI events to this URL.")
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run the first evolution turn immediately instead of after one period.",
    )
    parser.add_argument(
        "--log-dir", type=Path, default=Path("logs"), help="Directory for log files."
    )
    return parser


def _build_console_handler() -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    return handler


# Ensure the debug handler ONLY gets DEBUG messages from the evolution_bridge library
class BridgeDebugFilter(logging.Filter):
    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith(
            "evolution_bridge"
        )


def configure_logging(log_dir: Path) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = _build_console_handler()
    console_handler.setLevel(logging.INFO)

    info_file_handler = logging.FileHandler(log_dir / "bridge.log", encoding="utf-8")
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(file_format)

    debug_file_handler = logging.FileHandler(log_dir / "bridge_debug.log", encoding="utf-8")
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_format)
    debug_file_handler.addFilter(BridgeDebugFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(info_file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(debug_file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def settings_from_args(args: argparse.Namespace) -> BridgeSettings:
    return BridgeSettings.from_env().with_overrides(
        ledger_url=args.ledger_url,
        context_socket_url=args.context_url,
        host_id=args.host_id,
        turn_period=args.turn_period,
        max_tokens_per_turn=args.max_tokens,
        consent_scope=args.consent_scope,
        ui_webhook_url=args.ui_webhook,
        run_turn_on_start=True if args.run_now else None,
    )


async def run_bridge(settings: BridgeSettings) -> None:
    ui_sink = WebhookUiSink(settings.ui_webhook_url) if settings.ui_webhook_url else None
    bridge = LaneBridge(
        settings,
        scheduler=TurnScheduler(),
        nav_adapter=LocalNavigationAdapter(version=1),
        consent_provider=ReferenceConsentProvider(),
        ui_sink=ui_sink,
        haptic_sink=LoggingHapticSink(),
    )
    await bridge.start()
    try:
        await asyncio.Event().wait()
    finally:
        await bridge.stop()
        if ui_sink is not None:
            await ui_sink.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    # Load .env from the working directory before reading settings
    load_dotenv(Path.cwd() / ".env")

    args = build_parser().parse_args(argv)
    configure_logging(args.log_dir)
    settings = settings_from_args(args)

    _console.rule("Evolution Turn Bridge")
    _console.print(f"Host: [bold]{settings.host_id}[/bold]")
    _console.print(f"Ledger: {settings.ledger_url}")
    _console.print(f"Context socket: {settings.context_socket_url}")
    _console.print(
        f"Turn period: {settings.turn_period}s, max tokens: {settings.max_tokens_per_turn}, "
        f"consent: {settings.consent_scope}"
    )
    _console.rule()

    try:
        asyncio.run(run_bridge(settings))
    except KeyboardInterrupt:
        logging.info("Bridge stopped by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
