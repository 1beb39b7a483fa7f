"""
Tests for WalletSession (Web3 mocked, real eth_account signing).

Run with: pytest tests/ -v
"""

import logging
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from eth_account import Account

import wallet as wallet_module
from utils import TransactionError, WalletNotConnectedError
from wallet import Receipt, WalletSession
from conftest import TEST_KEY, RECIPIENTS


TEST_ADDRESS = Account.from_key(TEST_KEY).address


@pytest.fixture
def mock_w3():
    """Create mock Web3 instance."""
    w3 = MagicMock()
    w3.is_connected.return_value = True
    w3.eth.chain_id = 10218
    w3.eth.get_balance.return_value = 5 * 10**17  # 0.5 TEA
    w3.eth.gas_price = 10**9
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.send_raw_transaction.return_value = b"\xab" * 32
    w3.to_checksum_address.side_effect = lambda x: x
    w3.to_hex.side_effect = lambda b: "0x" + b.hex()
    return w3


@pytest.fixture
def connected(mock_w3):
    with patch("wallet.Web3") as mock_web3:
        mock_web3.return_value = mock_w3
        session = WalletSession("https://rpc.example.org", TEST_KEY)
        assert session.connect() is True
        yield session


class TestConnect:
    """Tests for wallet initialization."""

    def test_connect_success(self, mock_w3, caplog):
        caplog.set_level(logging.INFO, logger="autosender")

        with patch("wallet.Web3") as mock_web3:
            mock_web3.return_value = mock_w3
            session = WalletSession("https://rpc.example.org", TEST_KEY, timeout=15)
            assert session.connect() is True

            mock_web3.HTTPProvider.assert_called_once_with(
                "https://rpc.example.org", request_kwargs={"timeout": 15}
            )

        assert session.address == TEST_ADDRESS
        assert session.chain_id == 10218
        assert f"Wallet initialized: {TEST_ADDRESS}" in caplog.text
        assert "Wallet balance: 0.5 TEA" in caplog.text

    def test_rpc_unreachable(self, mock_w3, caplog):
        mock_w3.is_connected.return_value = False

        with patch("wallet.Web3") as mock_web3:
            mock_web3.return_value = mock_w3
            session = WalletSession("https://rpc.example.org", TEST_KEY)
            assert session.connect() is False

        assert "Error initializing wallet: Cannot reach RPC endpoint" in caplog.text
        assert not session.is_connected

    def test_malformed_key(self, caplog):
        with patch("wallet.Web3") as mock_web3:
            session = WalletSession("https://rpc.example.org", "0x1234")
            assert session.connect() is False
            mock_web3.assert_not_called()

        assert "Invalid private key format" in caplog.text

    def test_invalid_rpc_url(self, caplog):
        with patch("wallet.Web3") as mock_web3:
            session = WalletSession("ftp://rpc.example.org", TEST_KEY)
            assert session.connect() is False
            mock_web3.assert_not_called()

        assert "Invalid RPC URL" in caplog.text

    def test_chain_id_mismatch(self, mock_w3, caplog):
        with patch("wallet.Web3") as mock_web3:
            mock_web3.return_value = mock_w3
            session = WalletSession("https://rpc.example.org", TEST_KEY, chain_id=1)
            assert session.connect() is False

        assert "Unexpected chain_id 10218 (expected 1)" in caplog.text

    def test_rpc_error_during_connect(self, mock_w3, caplog):
        mock_w3.eth.get_balance.side_effect = ConnectionError("connection reset")

        with patch("wallet.Web3") as mock_web3:
            mock_web3.return_value = mock_w3
            session = WalletSession("https://rpc.example.org", TEST_KEY)
            assert session.connect() is False

        assert "Error initializing wallet: connection reset" in caplog.text

    def test_use_before_connect(self):
        session = WalletSession("https://rpc.example.org", TEST_KEY)
        with pytest.raises(WalletNotConnectedError):
            session.get_balance()
        with pytest.raises(WalletNotConnectedError):
            _ = session.address


class TestQueries:
    """Tests for balance and gas price."""

    def test_get_balance(self, connected, mock_w3):
        mock_w3.eth.get_balance.return_value = 123
        assert connected.get_balance() == 123
        mock_w3.eth.get_balance.assert_called_with(TEST_ADDRESS)

    def test_get_gas_price(self, connected, mock_w3):
        mock_w3.eth.gas_price = 2 * 10**9
        assert connected.get_gas_price() == 2 * 10**9


class TestSendNative:
    """Tests for signing and broadcasting a transfer."""

    def test_send_native(self, connected, mock_w3):
        tx_hash = connected.send_native(RECIPIENTS[0], 10**16, 10**9, 21000)

        assert tx_hash == "0x" + "ab" * 32
        mock_w3.eth.get_transaction_count.assert_called_once_with(TEST_ADDRESS, "pending")
        mock_w3.to_checksum_address.assert_called_once_with(RECIPIENTS[0])

        raw = mock_w3.eth.send_raw_transaction.call_args[0][0]
        assert isinstance(raw, bytes)
        assert len(raw) > 0

    def test_signed_transaction_fields(self, connected, mock_w3):
        account = MagicMock(address=TEST_ADDRESS)
        account.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
        connected.account = account

        connected.send_native(RECIPIENTS[1], 5 * 10**15, 3 * 10**9, 21000)

        mock_w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        tx = account.sign_transaction.call_args[0][0]
        assert tx == {
            "to": RECIPIENTS[1],
            "value": 5 * 10**15,
            "gas": 21000,
            "gasPrice": 3 * 10**9,
            "nonce": 7,
            "chainId": 10218,
        }

    def test_send_error_propagates(self, connected, mock_w3):
        mock_w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        with pytest.raises(ValueError, match="nonce too low"):
            connected.send_native(RECIPIENTS[0], 1, 1, 21000)


class TestConfirmation:
    """Tests for waiting on receipts."""

    def test_single_confirmation(self, connected, mock_w3):
        mock_w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1, "blockNumber": 100, "gasUsed": 21000,
        }

        receipt = connected.wait_for_confirmation("0xabc", confirmations=1, timeout=60)

        assert receipt == Receipt(tx_hash="0xabc", status=1, block_number=100, gas_used=21000)
        assert receipt.succeeded
        mock_w3.eth.wait_for_transaction_receipt.assert_called_once_with(
            "0xabc", timeout=60, poll_latency=2.0
        )

    def test_failed_status(self, connected, mock_w3):
        mock_w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 5}

        receipt = connected.wait_for_confirmation("0xdef")
        assert receipt.status == 0
        assert not receipt.succeeded

    def test_waits_for_extra_confirmations(self, connected, mock_w3, monkeypatch):
        sleeps = []
        monkeypatch.setattr(wallet_module.time, "sleep", lambda s: sleeps.append(s))
        mock_w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 100}
        type(mock_w3.eth).block_number = PropertyMock(side_effect=[100, 101, 102])

        receipt = connected.wait_for_confirmation("0xabc", confirmations=3, poll_latency=0.5)

        assert receipt.succeeded
        assert sleeps == [0.5, 0.5]

    def test_extra_confirmations_time_out(self, connected, mock_w3, monkeypatch):
        clock = iter([0.0, 5.0, 10.0])
        monkeypatch.setattr(wallet_module.time, "sleep", lambda s: None)
        monkeypatch.setattr(wallet_module.time, "monotonic", lambda: next(clock))
        mock_w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 100}
        type(mock_w3.eth).block_number = PropertyMock(return_value=100)

        with pytest.raises(TransactionError, match="not confirmed 2 times"):
            connected.wait_for_confirmation("0xabc", confirmations=2, timeout=3)
