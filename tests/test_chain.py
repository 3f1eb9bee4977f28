"""
Tests for the chain client registry and the EVM/TRON chain clients with mocked nodes.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from eth_account import Account
from eth_utils import to_hex
from tronpy.keys import PrivateKey
from web3.exceptions import ContractLogicError, TimeExhausted

from helpers import TX_HASH, make_payload, make_requirements
from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.chain.base import ChainClient, ChainClients
from x402_facilitator.chain.evm import EvmChainClient
from x402_facilitator.chain.tron import TronChainClient
from x402_facilitator.exceptions import (
    BroadcastUncertainError,
    ConfigurationError,
    ReceiptTimeoutError,
    TransactionRejectedError,
    TransientRpcError,
)
from x402_facilitator.models import decode_authorization, decode_terms
from x402_facilitator.utils.eip712 import split_signature

UNSIGNED_TX = {
    "to": "0x5425890298aed601595a70ab815c96711a31bc65",
    "value": 0,
    "gas": 120_000,
    "maxFeePerGas": 30_000_000_000,
    "maxPriorityFeePerGas": 1_000_000_000,
    "nonce": 7,
    "chainId": 43113,
    "data": "0x",
}


def _authorization():
    requirements = make_requirements()
    terms = decode_terms(requirements)
    return terms, decode_authorization(make_payload(requirements), terms.family)


def _mock_web3(build_transaction):
    w3 = MagicMock()
    contract = w3.eth.contract.return_value
    contract.functions.transferWithAuthorization.return_value.build_transaction = (
        build_transaction
    )
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    # awaited once per transfer
    w3.eth.chain_id = asyncio.sleep(0, result=43113)
    w3.eth.send_raw_transaction = AsyncMock(return_value=b"\x00" * 32)
    return w3


class TestChainClients:
    def test_dispatch_by_network(self, mock_chain_client):
        clients = ChainClients([mock_chain_client])
        assert clients.for_network("avalanche-fuji") is mock_chain_client
        assert clients.families() == [ChainFamily.EVM]

    def test_missing_family(self, mock_chain_client):
        clients = ChainClients([mock_chain_client])
        with pytest.raises(ConfigurationError):
            clients.for_network("tron-nile")

    def test_unknown_network(self, mock_chain_client):
        with pytest.raises(ConfigurationError):
            ChainClients([mock_chain_client]).for_network("solana")

    @pytest.mark.anyio
    async def test_close(self):
        client = MagicMock(spec=ChainClient)
        client.family = ChainFamily.EVM
        client.close = AsyncMock()
        await ChainClients([client]).close()
        client.close.assert_awaited_once()


class TestSplitSignature:
    def test_split(self):
        signature = bytes(range(64)) + bytes([28])
        v, r, s = split_signature(signature)
        assert v == 28
        assert r == bytes(range(32))
        assert s == bytes(range(32, 64))

    def test_legacy_v(self):
        v, _, _ = split_signature(b"\x01" * 64 + b"\x01")
        assert v == 28

    def test_bad_length(self):
        with pytest.raises(ValueError):
            split_signature(b"\x01" * 64)


class TestEvmChainClient:
    def test_address(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        expected = Account.from_key(mock_evm_private_key).address
        assert client.address() == AddressRef.parse(expected, ChainFamily.EVM)

    def test_key_without_prefix(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key[2:])
        assert client.address() == EvmChainClient(mock_evm_private_key).address()

    @pytest.mark.anyio
    async def test_transfer_returns_signed_hash(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = _mock_web3(AsyncMock(return_value=dict(UNSIGNED_TX)))
        client._ensure_web3 = MagicMock(return_value=w3)
        terms, authorization = _authorization()

        tx_hash = await client.transfer_with_authorization(
            "avalanche-fuji", terms.asset, authorization
        )

        expected = Account.from_key(mock_evm_private_key).sign_transaction(UNSIGNED_TX)
        assert tx_hash == to_hex(expected.hash)
        w3.eth.send_raw_transaction.assert_awaited_once()
        w3.eth.get_transaction_count.assert_awaited_once_with(
            client.address().to_evm_format(), "pending"
        )

    @pytest.mark.anyio
    async def test_broadcast_failure_is_uncertain(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = _mock_web3(AsyncMock(return_value=dict(UNSIGNED_TX)))
        w3.eth.send_raw_transaction = AsyncMock(
            side_effect=aiohttp.ClientError("connection reset")
        )
        client._ensure_web3 = MagicMock(return_value=w3)
        terms, authorization = _authorization()

        with pytest.raises(BroadcastUncertainError) as exc_info:
            await client.transfer_with_authorization("avalanche-fuji", terms.asset, authorization)

        expected = Account.from_key(mock_evm_private_key).sign_transaction(UNSIGNED_TX)
        assert exc_info.value.tx_hash == to_hex(expected.hash)

    @pytest.mark.anyio
    async def test_revert_on_build_is_rejected(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = _mock_web3(AsyncMock(side_effect=ContractLogicError("execution reverted")))
        client._ensure_web3 = MagicMock(return_value=w3)
        terms, authorization = _authorization()

        with pytest.raises(TransactionRejectedError):
            await client.transfer_with_authorization("avalanche-fuji", terms.asset, authorization)
        w3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.anyio
    async def test_node_unreachable_on_build_is_transient(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = _mock_web3(AsyncMock(side_effect=aiohttp.ClientError("refused")))
        client._ensure_web3 = MagicMock(return_value=w3)
        terms, authorization = _authorization()

        with pytest.raises(TransientRpcError):
            await client.transfer_with_authorization("avalanche-fuji", terms.asset, authorization)

    @pytest.mark.anyio
    async def test_receipt(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 0, "blockNumber": 12}
        )
        client._ensure_web3 = MagicMock(return_value=w3)

        receipt = await client.wait_for_receipt("avalanche-fuji", TX_HASH, 5.0)

        assert receipt.tx_hash == TX_HASH
        assert receipt.success is False
        assert receipt.block_number == 12

    @pytest.mark.anyio
    async def test_receipt_timeout(self, mock_evm_private_key):
        client = EvmChainClient(mock_evm_private_key)
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeExhausted("slow"))
        client._ensure_web3 = MagicMock(return_value=w3)

        with pytest.raises(ReceiptTimeoutError) as exc_info:
            await client.wait_for_receipt("avalanche-fuji", TX_HASH, 5.0)
        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.anyio
    async def test_missing_rpc_url(self, mock_evm_private_key, monkeypatch):
        client = EvmChainClient(mock_evm_private_key)
        monkeypatch.setattr(
            "x402_facilitator.chain.evm.NetworkConfig.get_rpc_url", lambda network: None
        )
        with pytest.raises(ConfigurationError):
            client._ensure_web3("avalanche-fuji")


class TestTronChainClient:
    def test_address(self, mock_tron_private_key):
        client = TronChainClient(mock_tron_private_key)
        expected = PrivateKey(bytes.fromhex(mock_tron_private_key)).public_key
        assert str(client.address()) == expected.to_base58check_address()

    @pytest.mark.anyio
    async def test_receipt_success(self, mock_tron_private_key):
        client = TronChainClient(mock_tron_private_key, poll_interval=0)
        tron = MagicMock()
        tron.get_transaction_info = AsyncMock(
            side_effect=[{}, {"blockNumber": 99, "receipt": {"result": "SUCCESS"}}]
        )
        client._ensure_client = MagicMock(return_value=tron)

        receipt = await client.wait_for_receipt("tron-nile", "ab" * 32, 5.0)

        assert receipt.success is True
        assert receipt.block_number == 99
        assert tron.get_transaction_info.await_count == 2

    @pytest.mark.anyio
    async def test_receipt_reverted(self, mock_tron_private_key):
        client = TronChainClient(mock_tron_private_key, poll_interval=0)
        tron = MagicMock()
        tron.get_transaction_info = AsyncMock(
            return_value={"blockNumber": 99, "receipt": {"result": "REVERT"}}
        )
        client._ensure_client = MagicMock(return_value=tron)

        receipt = await client.wait_for_receipt("tron-nile", "ab" * 32, 5.0)
        assert receipt.success is False

    @pytest.mark.anyio
    async def test_receipt_timeout(self, mock_tron_private_key):
        client = TronChainClient(mock_tron_private_key, poll_interval=0.01)
        tron = MagicMock()
        tron.get_transaction_info = AsyncMock(return_value={})
        client._ensure_client = MagicMock(return_value=tron)

        with pytest.raises(ReceiptTimeoutError):
            await client.wait_for_receipt("tron-nile", "ab" * 32, 0.05)
