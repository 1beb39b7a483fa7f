"""
Configuration Management Module

Builds the immutable run configuration from the environment (.env via
python-dotenv), an optional YAML settings file and the recipient list.
Environment variables always win over the settings file.
"""

import os
import re
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_FLOOR
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, List
from dataclasses import dataclass, asdict, field

import yaml
from dotenv import load_dotenv

# Setup basic logging for this module
import logging
logger = logging.getLogger(__name__)


def _resolve_base_dir(module_dir: Path) -> Path:
    """Directory holding address.txt, logs/ and autosender.yaml by default.

    A checkout uses the directory next to the program; an installed copy
    (site-packages) uses the working directory instead.
    """
    if {"site-packages", "dist-packages"} & set(module_dir.parts):
        return Path.cwd()
    return module_dir


BASE_DIR = _resolve_base_dir(Path(__file__).resolve().parent)

DEFAULT_RPC_URL = "https://tea-sepolia.g.alchemy.com/public"
DEFAULT_ADDRESS_FILE = BASE_DIR / "address.txt"
DEFAULT_LOG_FILE = BASE_DIR / "logs" / "autosender.log"
DEFAULT_SETTINGS_FILE = BASE_DIR / "autosender.yaml"

# Native transfers always cost exactly this much gas
NATIVE_TRANSFER_GAS = 21000

# Amounts are drawn on a 6-decimal grid
AMOUNT_QUANT = Decimal("0.000001")


class ConfigError(Exception):
    """Raised when a required startup input is missing or invalid."""
    pass


@dataclass(frozen=True)
class RunConfig:
    """Auto sender settings, fixed for the lifetime of the process."""

    # Network
    rpc_url: str = DEFAULT_RPC_URL
    private_key: str = field(default="", repr=False)
    chain_id: Optional[int] = None

    # Amounts (native token units)
    min_amount: Decimal = Decimal("0.001")
    max_amount: Decimal = Decimal("0.01")

    # Schedule
    interval_minutes: int = 1

    # Transaction settings
    gas_limit: int = NATIVE_TRANSFER_GAS
    confirmations: int = 1
    rpc_timeout: int = 30
    confirmation_timeout: int = 120

    # Display
    token_symbol: str = "TEA"
    explorer_url: str = "https://sepolia.tea.xyz/tx/"

    # Operation
    dry_run: bool = False
    address_file: str = str(DEFAULT_ADDRESS_FILE)
    log_file: str = str(DEFAULT_LOG_FILE)
    log_level: str = "INFO"
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB, 0 disables rotation
    log_backup_count: int = 5

    recipients: Tuple[str, ...] = ()

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (excluding sensitive data)."""
        data = asdict(self)
        data.pop("private_key", None)
        data["min_amount"] = str(self.min_amount)
        data["max_amount"] = str(self.max_amount)
        data["recipients"] = list(self.recipients)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        """Create RunConfig from dictionary."""
        # Filter only valid fields
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**valid_fields)


# Settings file key / environment variable -> parser
_SETTINGS = {
    "rpc_url": ("RPC_URL", str),
    "chain_id": ("CHAIN_ID", int),
    "min_amount": ("MIN_AMOUNT", Decimal),
    "max_amount": ("MAX_AMOUNT", Decimal),
    "interval_minutes": ("INTERVAL_MINUTES", int),
    "confirmations": ("CONFIRMATIONS", int),
    "rpc_timeout": ("RPC_TIMEOUT", int),
    "confirmation_timeout": ("CONFIRMATION_TIMEOUT", int),
    "token_symbol": ("TOKEN_SYMBOL", str),
    "explorer_url": ("EXPLORER_URL", str),
    "dry_run": ("DRY_RUN", bool),
    "address_file": ("ADDRESS_FILE", str),
    "log_file": ("LOG_FILE", str),
    "log_level": ("LOG_LEVEL", str),
    "log_max_bytes": ("LOG_MAX_BYTES", int),
    "log_backup_count": ("LOG_BACKUP_COUNT", int),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _parse_interval(value: Any) -> int:
    """Interval minutes from the leading integer ('2.5' -> 2); none or zero falls back to 1."""
    match = _LEADING_INT.match(str(value))
    if not match:
        return 1
    minutes = int(match.group(1))
    if minutes == 0:
        return 1
    if minutes < 0:
        raise ConfigError(f"INTERVAL_MINUTES must be positive, got {minutes}")
    return minutes


def _convert(name: str, parser, value: Any) -> Any:
    if name == "interval_minutes":
        return _parse_interval(value)
    if parser is bool:
        return _parse_bool(value)
    if parser is Decimal:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ConfigError(f"{_SETTINGS[name][0]} must be a decimal number, got {value!r}")
        if not amount.is_finite():
            raise ConfigError(f"{_SETTINGS[name][0]} must be a finite decimal number, got {value!r}")
        return amount
    try:
        return parser(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise ConfigError(f"{_SETTINGS[name][0]} has an invalid value: {value!r}")


def parse_recipients(text: str) -> List[str]:
    """Split newline-delimited addresses, dropping blanks and # comments."""
    recipients = []
    for line in text.splitlines():
        address = line.strip()
        if not address or address.startswith("#"):
            continue
        recipients.append(address)
    return recipients


def load_recipients(path) -> Tuple[str, ...]:
    """Read the recipient list file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"{path.name} not found!")
    with open(path, "r", encoding="utf-8") as f:
        return tuple(parse_recipients(f.read()))


def read_settings_file(path) -> Dict[str, Any]:
    """Read the optional YAML settings file (empty dict when absent)."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file must be a mapping: {path}")

    # Keys belong in the environment, never on disk next to the settings
    data.pop("private_key", None)
    return data


def amount_bounds(min_amount: Decimal, max_amount: Decimal) -> Tuple[int, int]:
    """Smallest and largest 6-decimal grid steps inside [min_amount, max_amount]."""
    low = (min_amount / AMOUNT_QUANT).to_integral_value(rounding=ROUND_CEILING)
    high = (max_amount / AMOUNT_QUANT).to_integral_value(rounding=ROUND_FLOOR)
    return int(low), int(high)


def _validate_amounts(min_amount: Decimal, max_amount: Decimal):
    if min_amount < 0:
        raise ConfigError(f"MIN_AMOUNT cannot be negative, got {min_amount}")
    if min_amount > max_amount:
        raise ConfigError(f"MIN_AMOUNT ({min_amount}) must not exceed MAX_AMOUNT ({max_amount})")
    # At least one 6-decimal value must fit inside the range
    try:
        low, high = amount_bounds(min_amount, max_amount)
    except ArithmeticError:
        raise ConfigError(f"Amount range {min_amount} - {max_amount} is out of range")
    if low > high:
        raise ConfigError(
            f"Amount range {min_amount} - {max_amount} contains no value with 6 decimal places"
        )


def load_config(env_file: Optional[str] = None, settings_file: Optional[str] = None) -> RunConfig:
    """
    Build the run configuration.

    Precedence: built-in defaults < YAML settings file < environment.

    Raises:
        ConfigError: PRIVATE_KEY missing, recipient file missing,
            or invalid amount settings.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    settings_path = settings_file or os.getenv("AUTOSENDER_CONFIG") or DEFAULT_SETTINGS_FILE
    raw = read_settings_file(settings_path)

    values: Dict[str, Any] = {}
    for name, (env_name, parser) in _SETTINGS.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            value = raw.get(name)
        if value is None:
            continue
        values[name] = _convert(name, parser, value)

    private_key = (os.getenv("PRIVATE_KEY") or "").strip()
    if not private_key:
        raise ConfigError("PRIVATE_KEY is required in .env file")

    address_file = values.get("address_file", str(DEFAULT_ADDRESS_FILE))
    recipients = load_recipients(address_file)

    config = RunConfig.from_dict({
        **values,
        "private_key": private_key,
        "recipients": recipients,
    })
    _validate_amounts(config.min_amount, config.max_amount)

    if config.confirmations < 1:
        raise ConfigError(f"CONFIRMATIONS must be at least 1, got {config.confirmations}")

    logger.debug(f"Configuration loaded: {len(recipients)} recipients from {address_file}")
    return config
