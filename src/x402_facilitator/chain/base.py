"""
Chain client interface and per-family dispatch
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.config import NetworkConfig
from x402_facilitator.exceptions import ConfigurationError
from x402_facilitator.models import PaymentAuthorization


@dataclass(frozen=True)
class TransactionReceipt:
    """Mined transaction"""

    tx_hash: str
    success: bool
    block_number: Optional[int] = None


class ChainClient(ABC):
    """
    Abstract base class for chain clients.

    Reads EIP-3009 token state and submits transferWithAuthorization calls
    signed by the facilitator's own account. Implementations translate their
    library's exceptions into ``ChainClientError`` subclasses:

    * ``TransientRpcError``: nothing was sent, safe to retry
    * ``BroadcastUncertainError``: the transaction may have reached the network
    * ``TransactionRejectedError``: definitive rejection before broadcast
    * ``ReceiptTimeoutError``: no receipt within the timeout
    """

    family: ChainFamily

    @abstractmethod
    def address(self) -> AddressRef:
        """Get the facilitator's account address"""
        pass

    @abstractmethod
    async def balance_of(self, network: str, token: AddressRef, owner: AddressRef) -> int:
        """Token balance of *owner*"""
        pass

    @abstractmethod
    async def authorization_used(
        self, network: str, token: AddressRef, authorizer: AddressRef, nonce: bytes
    ) -> bool:
        """Whether *nonce* of *authorizer* was already consumed (``authorizationState``)"""
        pass

    @abstractmethod
    async def transfer_with_authorization(
        self, network: str, token: AddressRef, authorization: PaymentAuthorization
    ) -> str:
        """
        Sign and broadcast transferWithAuthorization.

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    async def wait_for_receipt(
        self, network: str, tx_hash: str, timeout: float
    ) -> TransactionReceipt:
        """
        Wait up to *timeout* seconds for the transaction to be mined.

        Raises:
            ReceiptTimeoutError: If no receipt appeared in time
            TransientRpcError: If the node could not be queried
        """
        pass

    async def close(self) -> None:
        """Release network resources"""
        pass


class ChainClients:
    """Chain clients keyed by chain family"""

    def __init__(self, clients: Iterable[ChainClient] = ()) -> None:
        self._clients: dict[ChainFamily, ChainClient] = {}
        for client in clients:
            self.register(client)

    def register(self, client: ChainClient) -> "ChainClients":
        self._clients[client.family] = client
        return self

    def families(self) -> list[ChainFamily]:
        return list(self._clients)

    def for_family(self, family: ChainFamily) -> ChainClient:
        """
        Raises:
            ConfigurationError: If no client serves *family*
        """
        client = self._clients.get(family)
        if client is None:
            raise ConfigurationError(f"No chain client configured for {family.value}")
        return client

    def for_network(self, network: str) -> ChainClient:
        """
        Raises:
            ConfigurationError: If the network is unknown or has no client
        """
        return self.for_family(NetworkConfig.get_family(network))

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
