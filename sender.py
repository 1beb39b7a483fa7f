#!/usr/bin/env python3
"""
Sender Loop
===========
Sends a randomized amount of the native token to every recipient, one at a
time and in list order, then waits for the configured interval and does it
again. The next pass is scheduled from the end of the previous one, so
passes never overlap.
"""

import random
import time
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Sequence

from web3 import Web3
from rich.table import Table
from rich import box

from config import RunConfig, AMOUNT_QUANT, amount_bounds
from logging_utils import console
from utils import InsufficientFundsError, format_amount, format_duration, format_ether

logger = logging.getLogger("autosender")


class TransferOutcome(Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ERROR = "error"
    DRY_RUN = "dry_run"


@dataclass
class TransferAttempt:
    """Result of one transfer to one recipient within a pass."""
    recipient: str
    amount: Optional[Decimal] = None
    gas_price: Optional[int] = None
    total_cost: Optional[int] = None
    outcome: TransferOutcome = TransferOutcome.ERROR
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class AutoSender:
    """Periodic multi-recipient native token sender."""

    def __init__(self, config: RunConfig, session, recipients: Optional[Sequence[str]] = None,
                 rng: Optional[random.Random] = None, sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            config: Run configuration
            session: Connected WalletSession (or anything with the same methods)
            recipients: Addresses to pay; defaults to config.recipients
            rng: Random source for amounts
            sleep: Wait function used between passes
        """
        self.config = config
        self.session = session
        self.recipients = tuple(config.recipients if recipients is None else recipients)
        self.rng = rng or random.Random()
        self._sleep = sleep

        # Stats
        self.pass_count = 0
        self.confirmed = 0
        self.failed = 0
        self.skipped = 0
        self.errors = 0
        self.total_sent = Decimal("0")

    @property
    def symbol(self) -> str:
        return self.config.token_symbol

    def get_random_amount(self) -> Decimal:
        """Uniform draw over the 6-decimal values inside [min_amount, max_amount]."""
        low, high = amount_bounds(self.config.min_amount, self.config.max_amount)
        return Decimal(self.rng.randint(low, high)) * AMOUNT_QUANT

    def send_to(self, recipient: str) -> TransferAttempt:
        """Send one randomized transfer; never raises."""
        attempt = TransferAttempt(recipient=recipient)
        try:
            amount = self.get_random_amount()
            amount_wei = int(Web3.to_wei(amount, "ether"))
            attempt.amount = amount

            balance = self.session.get_balance()
            gas_price = self.session.get_gas_price()
            gas_limit = self.config.gas_limit
            total_cost = amount_wei + gas_price * gas_limit
            attempt.gas_price = gas_price
            attempt.total_cost = total_cost

            if balance < total_cost:
                raise InsufficientFundsError(
                    f"Insufficient balance for {recipient}. "
                    f"Required (w/ gas): {format_ether(total_cost)} {self.symbol}"
                )

            if self.config.dry_run:
                logger.info(f"[DRY RUN] Would send {format_amount(amount)} {self.symbol} to {recipient}")
                attempt.outcome = TransferOutcome.DRY_RUN
                return attempt

            logger.info(f"Sending {format_amount(amount)} {self.symbol} to {recipient}...")
            tx_hash = self.session.send_native(recipient, amount_wei, gas_price, gas_limit)
            attempt.tx_hash = tx_hash
            logger.info(f"Tx sent! Hash: {tx_hash}")
            logger.info(f"Explorer: {self.config.explorer_url}{tx_hash}")

            receipt = self.session.wait_for_confirmation(
                tx_hash,
                confirmations=self.config.confirmations,
                timeout=self.config.confirmation_timeout,
            )

            if receipt.succeeded:
                logger.info(f"✅ Confirmed: Sent {format_amount(amount)} {self.symbol} to {recipient}")
                attempt.outcome = TransferOutcome.CONFIRMED
            else:
                logger.error(f"❌ Failed: {recipient}")
                attempt.outcome = TransferOutcome.FAILED

        except InsufficientFundsError as e:
            logger.warning(str(e))
            attempt.outcome = TransferOutcome.INSUFFICIENT_FUNDS

        except Exception as e:
            logger.error(f"Error sending to {recipient}: {e}")
            attempt.outcome = TransferOutcome.ERROR
            attempt.error = str(e)

        return attempt

    def _record(self, attempt: TransferAttempt):
        if attempt.outcome is TransferOutcome.CONFIRMED:
            self.confirmed += 1
            self.total_sent += attempt.amount
        elif attempt.outcome is TransferOutcome.FAILED:
            self.failed += 1
        elif attempt.outcome is TransferOutcome.INSUFFICIENT_FUNDS:
            self.skipped += 1
        elif attempt.outcome is TransferOutcome.ERROR:
            self.errors += 1

    def run_pass(self) -> List[TransferAttempt]:
        """One pass: every recipient, sequentially, in list order."""
        self.pass_count += 1
        logger.debug(f"Pass {self.pass_count}: {len(self.recipients)} recipients")

        attempts = []
        for recipient in self.recipients:
            attempt = self.send_to(recipient)
            self._record(attempt)
            attempts.append(attempt)

        self.show_stats()
        return attempts

    def show_stats(self):
        """Display cumulative stats"""
        table = Table(title=f"Auto Sender | Pass {self.pass_count}", box=box.ROUNDED)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Recipients", str(len(self.recipients)))
        table.add_row("Confirmed", str(self.confirmed))
        table.add_row("Failed", str(self.failed))
        table.add_row("Insufficient Funds", str(self.skipped))
        table.add_row("Errors", str(self.errors))
        table.add_row(f"Total {self.symbol} Sent", format_amount(self.total_sent))
        table.add_row("Dry Run", "Yes" if self.config.dry_run else "No")

        console.print(table)

    def run(self, max_passes: Optional[int] = None):
        """
        Run passes until max_passes is reached (forever when None).

        The first pass starts immediately; each later pass starts
        interval_minutes after the previous one finished.
        """
        completed = 0
        while max_passes is None or completed < max_passes:
            try:
                self.run_pass()
            except Exception as e:
                logger.error(f"Uncaught Exception: {e}")
            completed += 1

            if max_passes is not None and completed >= max_passes:
                break

            interval = self.config.interval_seconds
            logger.debug(f"Next pass in {format_duration(interval)}")
            self._sleep(interval)
