"""
Utility Module

Shared exceptions, formatting and validation helpers.
"""

from decimal import Decimal
from typing import Union

from web3 import Web3


class TransactionError(Exception):
    """Custom exception for transaction failures."""
    pass


class InsufficientFundsError(Exception):
    """Custom exception for insufficient funds."""
    pass


class WalletNotConnectedError(RuntimeError):
    """Raised when the wallet session is used before connect() succeeded."""
    pass


# Formatting utilities

def format_ether(wei_amount: int) -> str:
    """Format a wei amount as a plain decimal ether string (e.g. '0.0105')."""
    if wei_amount == 0:
        return "0.0"

    value = Decimal(wei_amount) / Decimal(10 ** 18)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0")
        if text.endswith("."):
            text += "0"
    else:
        text += ".0"
    return text


def format_amount(amount: Union[Decimal, float]) -> str:
    """Format a token amount with the 6 decimal places transfers are drawn on."""
    return f"{Decimal(str(amount)):.6f}"


def format_duration(seconds: int) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s" if secs > 0 else f"{minutes}m"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"


# Validation utilities

def validate_private_key(key: str) -> bool:
    """Validate private key format."""
    if not key:
        return False

    # Remove 0x prefix if present
    key_clean = key[2:] if key.startswith("0x") else key

    # Check length and hex format
    if len(key_clean) != 64:
        return False

    try:
        int(key_clean, 16)
        return True
    except ValueError:
        return False


def validate_address(address: str) -> bool:
    """
    Validate Ethereum address format and checksum.

    Mixed-case addresses must carry a valid EIP-55 checksum;
    all-lowercase or all-uppercase addresses are accepted as is.
    """
    if not address:
        return False

    try:
        return bool(Web3.is_address(address))
    except (ValueError, TypeError):
        return False

