"""Shared fixtures for the auto sender test suite."""

import logging
import signal
import sys
import threading
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import RunConfig, _SETTINGS
from wallet import Receipt


TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RECIPIENTS = (
    "0x696381f39F17cAD67032f5f52A4924ce84e51BA3",
    "0x4200000000000000000000000000000000000006",
    "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip every setting the loader reads so tests never see the real shell env."""
    names = [env_name for env_name, _ in _SETTINGS.values()]
    names += ["PRIVATE_KEY", "AUTOSENDER_CONFIG"]
    for name in names:
        # setenv first so anything load_dotenv sets is removed at teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def reset_logger():
    """Leave the shared logger and global hooks the way each test found them."""
    logger = logging.getLogger("autosender")
    excepthook = sys.excepthook
    thread_excepthook = threading.excepthook
    sigterm = signal.getsignal(signal.SIGTERM)

    logger.propagate = True
    yield logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    sys.excepthook = excepthook
    threading.excepthook = thread_excepthook
    signal.signal(signal.SIGTERM, sigterm)


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            "private_key": TEST_KEY,
            "recipients": RECIPIENTS,
            "min_amount": Decimal("0.001"),
            "max_amount": Decimal("0.01"),
            "log_file": str(tmp_path / "logs" / "autosender.log"),
        }
        values.update(overrides)
        return RunConfig(**values)
    return _make


@pytest.fixture
def mock_session():
    """Wallet session double with 1 ETH, 1 gwei gas and successful receipts."""
    session = Mock()
    session.get_balance = Mock(return_value=10**18)
    session.get_gas_price = Mock(return_value=10**9)
    session.send_native = Mock(side_effect=lambda to, *args: f"0xhash{to[-4:]}")
    session.wait_for_confirmation = Mock(
        side_effect=lambda tx_hash, **kwargs: Receipt(tx_hash=tx_hash, status=1, block_number=1)
    )
    return session
