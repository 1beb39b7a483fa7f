#!/usr/bin/env python3
"""
TEA Multi-Address Auto Sender
=============================
Sends randomized native-token amounts from one wallet to a list of
recipients on a fixed interval, logging every attempt.

Usage:
    python bot.py                 # run forever
    python bot.py --once          # single pass, then exit
    python bot.py --dry-run       # check balances, never submit
"""

import argparse
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from rich.console import Console

from config import ConfigError, RunConfig, load_config
from logging_utils import setup_logging, install_exception_hooks
from sender import AutoSender
from utils import validate_address
from wallet import WalletSession

err_console = Console(stderr=True)


def _handle_stop_signal(signum, frame):
    raise KeyboardInterrupt


def log_startup(logger, config: RunConfig):
    """Banner and run parameters, written to console and log file."""
    logger.info(f"===== {config.token_symbol} Multi-Address Auto Sender Started =====")
    logger.info(f"Total recipients: {len(config.recipients)}")
    logger.info(f"Amount range: {config.min_amount} - {config.max_amount} {config.token_symbol}")
    logger.info(f"Interval: {config.interval_minutes} minutes")
    if config.dry_run:
        logger.info("Mode: DRY RUN (no transactions will be submitted)")

    for address in config.recipients:
        if not validate_address(address):
            logger.warning(f"Recipient does not look like a valid address: {address}")


def run_command(config: RunConfig, once: bool = False) -> int:
    """Connect the wallet and run the sender loop."""
    logger = setup_logging(
        config.log_file,
        log_level=config.log_level,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
        secrets=[config.private_key],
    )
    install_exception_hooks(logger)
    signal.signal(signal.SIGTERM, _handle_stop_signal)

    try:
        log_startup(logger, config)

        session = WalletSession(
            config.rpc_url,
            config.private_key,
            chain_id=config.chain_id,
            timeout=config.rpc_timeout,
            token_symbol=config.token_symbol,
        )
        if not session.connect():
            logger.error("Wallet initialization failed, exiting.")
            return 1

        sender = AutoSender(config, session)
        sender.run(max_passes=1 if once else None)

    except KeyboardInterrupt:
        logger.info("⛔ Stopped by user.")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Multi-address native token auto sender")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument("--dry-run", action="store_true", help="Simulation mode")
    parser.add_argument("--env-file", type=str, help="Path to .env file (default: ./.env)")
    parser.add_argument("--config", type=str, help="Path to YAML settings file")

    args = parser.parse_args(argv)

    try:
        config = load_config(env_file=args.env_file, settings_file=args.config)
    except ConfigError as e:
        err_console.print(f"Error: {e}", style="red", markup=False, highlight=False)
        return 1

    if args.dry_run and not config.dry_run:
        config = replace(config, dry_run=True)

    return run_command(config, once=args.once)


if __name__ == "__main__":
    sys.exit(main())
