"""
Tests for BalanceOracle.
"""

import pytest

from helpers import FUJI, MERCHANT, PAYER_ADDRESS, USDC_FUJI
from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.chain.base import ChainClients
from x402_facilitator.exceptions import (
    ContractCallError,
    InsufficientFundsError,
    TransientRpcError,
)
from x402_facilitator.verification.funds import BalanceOracle

TOKEN = AddressRef.parse(USDC_FUJI, ChainFamily.EVM)
PAYER = AddressRef.parse(PAYER_ADDRESS, ChainFamily.EVM)


class TestBalanceOracle:
    @pytest.mark.anyio
    async def test_sufficient(self, chain_clients, mock_chain_client):
        mock_chain_client.balance_of.return_value = 100
        await BalanceOracle(chain_clients).check_funds(FUJI, TOKEN, PAYER, 100)
        mock_chain_client.balance_of.assert_awaited_once_with(FUJI, TOKEN, PAYER)

    @pytest.mark.anyio
    async def test_insufficient(self, chain_clients, mock_chain_client):
        mock_chain_client.balance_of.return_value = 99
        with pytest.raises(InsufficientFundsError) as exc_info:
            await BalanceOracle(chain_clients).check_funds(FUJI, TOKEN, PAYER, 100)
        assert exc_info.value.payer == PAYER

    @pytest.mark.anyio
    async def test_rpc_failure(self, chain_clients, mock_chain_client):
        mock_chain_client.balance_of.side_effect = TransientRpcError("node down")
        with pytest.raises(ContractCallError):
            await BalanceOracle(chain_clients).check_funds(FUJI, TOKEN, PAYER, 100)

    @pytest.mark.anyio
    async def test_no_client_for_family(self):
        oracle = BalanceOracle(ChainClients())
        with pytest.raises(ContractCallError):
            await oracle.check_funds(FUJI, TOKEN, AddressRef.parse(MERCHANT, ChainFamily.EVM), 1)
