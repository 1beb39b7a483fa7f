"""
Wallet Module
=============
Holds the connected sending account for the lifetime of the process.

The session wraps a Web3 HTTP connection and an eth_account signer and
exposes exactly what the sender needs: balance, gas price, a signed
native-token transfer and a confirmation wait. Created once at startup,
never reconnected.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from web3 import Web3
from eth_account import Account

from utils import TransactionError, WalletNotConnectedError, format_ether, validate_private_key

logger = logging.getLogger("autosender")


@dataclass
class Receipt:
    """Outcome of a mined transaction."""
    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class WalletSession:
    """
    Connected account: keypair plus RPC endpoint.

    Usage:
        session = WalletSession(rpc_url, private_key)
        if session.connect():
            tx_hash = session.send_native(to, amount_wei, gas_price, 21000)
            receipt = session.wait_for_confirmation(tx_hash)
    """

    def __init__(self, rpc_url: str, private_key: str, chain_id: Optional[int] = None,
                 timeout: int = 30, token_symbol: str = "TEA"):
        """
        Args:
            rpc_url: JSON-RPC endpoint URL
            private_key: Hex signing key (with or without 0x)
            chain_id: Expected chain id; read from the node when None
            timeout: HTTP request timeout in seconds
            token_symbol: Native token symbol used in log lines
        """
        self.rpc_url = rpc_url
        self.expected_chain_id = chain_id
        self.timeout = timeout
        self.token_symbol = token_symbol

        self._private_key = private_key
        self.web3: Optional[Web3] = None
        self.account = None
        self.chain_id: Optional[int] = None

    def _validate_rpc_url(self, url: str) -> bool:
        """RPC URL must be http(s) with a host."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            return False
        if not parsed.netloc:
            return False
        if parsed.scheme == "http" and not parsed.netloc.startswith(("localhost", "127.")):
            logger.warning(f"Non-HTTPS RPC URL: {url}")
        return True

    def connect(self) -> bool:
        """
        Connect to the RPC endpoint and derive the account.

        Returns:
            True when the wallet is ready to send; failures are logged.
        """
        try:
            if not self._validate_rpc_url(self.rpc_url):
                raise ValueError(f"Invalid RPC URL: {self.rpc_url}")

            if not validate_private_key(self._private_key):
                raise ValueError("Invalid private key format")

            web3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout}))
            if not web3.is_connected():
                raise ConnectionError(f"Cannot reach RPC endpoint {self.rpc_url}")

            account = Account.from_key(self._private_key)

            chain_id = web3.eth.chain_id
            if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
                raise ValueError(
                    f"Unexpected chain_id {chain_id} (expected {self.expected_chain_id})"
                )

            balance = web3.eth.get_balance(account.address)

            self.web3 = web3
            self.account = account
            self.chain_id = chain_id

            logger.info(f"Wallet initialized: {account.address}")
            logger.info(f"Wallet balance: {format_ether(balance)} {self.token_symbol}")
            return True

        except Exception as e:
            logger.error(f"Error initializing wallet: {e}")
            return False

    @property
    def is_connected(self) -> bool:
        return self.web3 is not None and self.account is not None

    def _require_connection(self):
        if not self.is_connected:
            raise WalletNotConnectedError("Wallet session not connected")

    @property
    def address(self) -> str:
        """Get wallet address."""
        self._require_connection()
        return self.account.address

    def get_balance(self) -> int:
        """Current native balance in wei."""
        self._require_connection()
        return self.web3.eth.get_balance(self.account.address)

    def get_gas_price(self) -> int:
        """Current network gas price in wei."""
        self._require_connection()
        return self.web3.eth.gas_price

    def send_native(self, to: str, amount_wei: int, gas_price: int, gas_limit: int) -> str:
        """
        Sign and broadcast a value-only transfer.

        Args:
            to: Recipient address
            amount_wei: Value in wei
            gas_price: Legacy gas price in wei
            gas_limit: Gas units

        Returns:
            Transaction hash (hex)
        """
        self._require_connection()

        tx = {
            "to": self.web3.to_checksum_address(to),
            "value": amount_wei,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "nonce": self.web3.eth.get_transaction_count(self.account.address, "pending"),
            "chainId": self.chain_id,
        }

        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return self.web3.to_hex(tx_hash)

    def wait_for_confirmation(self, tx_hash: str, confirmations: int = 1,
                              timeout: int = 120, poll_latency: float = 2.0) -> Receipt:
        """
        Wait until the transaction is mined and buried under enough blocks.

        Raises:
            web3.exceptions.TimeExhausted: Not mined within timeout
            TransactionError: Mined, but not buried deep enough in time
        """
        self._require_connection()
        deadline = time.monotonic() + timeout

        receipt = self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=poll_latency
        )
        block_number = receipt["blockNumber"]

        # The mining block itself counts as the first confirmation
        while confirmations > 1 and self.web3.eth.block_number - block_number + 1 < confirmations:
            if time.monotonic() > deadline:
                raise TransactionError(
                    f"Transaction {tx_hash} not confirmed {confirmations} times within {timeout}s"
                )
            time.sleep(poll_latency)

        return Receipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            block_number=block_number,
            gas_used=receipt.get("gasUsed"),
        )
