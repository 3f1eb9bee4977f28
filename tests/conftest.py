"""
Pytest configuration and fixtures
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from helpers import FUJI, NILE, TX_HASH, FixedClock, make_requirements
from x402_facilitator.address import ChainFamily
from x402_facilitator.chain.base import ChainClient, ChainClients, TransactionReceipt
from x402_facilitator.registry import SupportedRegistry


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mock_evm_private_key():
    """Mock EVM private key for testing"""
    return "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"


@pytest.fixture
def mock_tron_private_key():
    """Mock TRON private key for testing"""
    return "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def registry():
    return SupportedRegistry.for_networks([FUJI, "avalanche", "base-sepolia", NILE])


@pytest.fixture
def fuji_requirements():
    return make_requirements()


@pytest.fixture
def mock_chain_client():
    """EVM chain client whose transfers are mined successfully"""
    client = MagicMock(spec=ChainClient)
    client.family = ChainFamily.EVM
    client.balance_of = AsyncMock(return_value=10**12)
    client.authorization_used = AsyncMock(return_value=False)
    client.transfer_with_authorization = AsyncMock(return_value=TX_HASH)
    client.wait_for_receipt = AsyncMock(
        return_value=TransactionReceipt(tx_hash=TX_HASH, success=True, block_number=1)
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def chain_clients(mock_chain_client):
    return ChainClients([mock_chain_client])
