"""
Payer balance check
"""

import logging

from x402_facilitator.address import AddressRef
from x402_facilitator.chain.base import ChainClients
from x402_facilitator.exceptions import (
    ChainClientError,
    ConfigurationError,
    ContractCallError,
    InsufficientFundsError,
)

logger = logging.getLogger(__name__)


class BalanceOracle:
    """Checks that the payer holds enough tokens to cover the transfer.

    Advisory only: the balance may change between verification and settlement.
    """

    def __init__(self, chain_clients: ChainClients) -> None:
        self._chain_clients = chain_clients

    async def check_funds(
        self, network: str, token: AddressRef, payer: AddressRef, amount: int
    ) -> None:
        """
        Raises:
            InsufficientFundsError: If the balance is below *amount*
            ContractCallError: If the balance cannot be read
        """
        try:
            client = self._chain_clients.for_network(network)
            balance = await client.balance_of(network, token, payer)
        except (ChainClientError, ConfigurationError) as e:
            logger.warning("balanceOf failed on %s for %s: %s", network, payer, e)
            raise ContractCallError(f"balanceOf failed: {e}", payer=payer) from e

        if balance < amount:
            raise InsufficientFundsError(
                f"balance {balance} < required {amount}", payer=payer
            )
