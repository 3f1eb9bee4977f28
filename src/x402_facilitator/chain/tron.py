"""
TronChainClient - EIP-3009 chain client for TRON networks using tronpy
"""

import asyncio
import logging
import os
from typing import Any, Optional

import httpx
from tronpy import AsyncTron
from tronpy.defaults import conf_for_name
from tronpy.exceptions import (
    ApiError,
    TransactionNotFound,
    TvmError,
    ValidationError,
)
from tronpy.keys import PrivateKey
from tronpy.providers.async_http import AsyncHTTPProvider

from x402_facilitator.abi import EIP3009_ABI
from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.chain.base import ChainClient, TransactionReceipt
from x402_facilitator.config import NetworkConfig
from x402_facilitator.exceptions import (
    BroadcastUncertainError,
    ConfigurationError,
    ReceiptTimeoutError,
    TransactionRejectedError,
    TransientRpcError,
)
from x402_facilitator.models import PaymentAuthorization
from x402_facilitator.utils.eip712 import split_signature

logger = logging.getLogger(__name__)

# 1000 TRX
DEFAULT_FEE_LIMIT = 1_000_000_000

RPC_ERRORS = (ApiError, httpx.HTTPError, asyncio.TimeoutError, OSError)


def create_async_tron_client(network: str) -> AsyncTron:
    """Create an AsyncTron client for the given tronpy network name.

    Automatically uses TronGrid API key from TRON_GRID_API_KEY env var if set.

    Args:
        network: TRON network name ("nile", "shasta" or "mainnet")
    """
    api_key = os.getenv("TRON_GRID_API_KEY")
    if not api_key:
        if network == "mainnet":
            logger.warning(
                "TRON_GRID_API_KEY is not set. Mainnet requests may be rate-limited or fail; "
                "set TRON_GRID_API_KEY in your environment/.env to use TronGrid reliably."
            )
        logger.info("Creating AsyncTron client for network=%s", network)
        return AsyncTron(network=network)

    conf = conf_for_name(network)
    if not conf:
        raise ConfigurationError(
            f"Unknown TRON network '{network}'. Expected one of: mainnet, nile, shasta."
        )
    endpoint_uri = conf["fullnode"]
    provider = AsyncHTTPProvider(endpoint_uri=endpoint_uri, api_key=api_key)
    logger.info(
        "Creating AsyncTron client with TronGrid API key for network=%s (%s)",
        network,
        endpoint_uri,
    )
    return AsyncTron(provider=provider, network=network)


class TronChainClient(ChainClient):
    """TRON chain client implementation using AsyncTron"""

    family = ChainFamily.TRON

    def __init__(
        self,
        private_key: str,
        fee_limit: int = DEFAULT_FEE_LIMIT,
        request_timeout: float = 10.0,
        poll_interval: float = 3.0,
    ) -> None:
        clean_key = private_key[2:] if private_key.startswith("0x") else private_key
        self._private_key = PrivateKey(bytes.fromhex(clean_key))
        self._address = AddressRef.parse(
            self._private_key.public_key.to_base58check_address(), ChainFamily.TRON
        )
        self._fee_limit = fee_limit
        self._request_timeout = request_timeout
        self._poll_interval = poll_interval
        self._tron_clients: dict[str, AsyncTron] = {}
        self._contracts: dict[tuple[str, AddressRef], Any] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}

    def address(self) -> AddressRef:
        return self._address

    def _ensure_client(self, network: str) -> AsyncTron:
        """Lazy initialize AsyncTron for the given network."""
        if network not in self._tron_clients:
            self._tron_clients[network] = create_async_tron_client(
                NetworkConfig.get_tron_network_name(network)
            )
        return self._tron_clients[network]

    def _send_lock(self, network: str) -> asyncio.Lock:
        lock = self._send_locks.get(network)
        if lock is None:
            lock = self._send_locks[network] = asyncio.Lock()
        return lock

    async def _contract(self, network: str, token: AddressRef) -> Any:
        key = (network, token)
        if key not in self._contracts:
            client = self._ensure_client(network)
            try:
                contract = await asyncio.wait_for(
                    client.get_contract(str(token)), self._request_timeout
                )
            except RPC_ERRORS as e:
                raise TransientRpcError(f"loading contract {token} failed: {e}") from e
            contract.abi = EIP3009_ABI
            self._contracts[key] = contract
        return self._contracts[key]

    async def _call(self, network: str, token: AddressRef, method: str, *args: Any) -> Any:
        contract = await self._contract(network, token)
        func = getattr(contract.functions, method)
        try:
            # constant functions are executed by awaiting the call
            return await asyncio.wait_for(func(*args), self._request_timeout)
        except RPC_ERRORS as e:
            raise TransientRpcError(f"{method} failed: {e}") from e

    async def balance_of(self, network: str, token: AddressRef, owner: AddressRef) -> int:
        return int(await self._call(network, token, "balanceOf", str(owner)))

    async def authorization_used(
        self, network: str, token: AddressRef, authorizer: AddressRef, nonce: bytes
    ) -> bool:
        return bool(await self._call(network, token, "authorizationState", str(authorizer), nonce))

    async def transfer_with_authorization(
        self, network: str, token: AddressRef, authorization: PaymentAuthorization
    ) -> str:
        contract = await self._contract(network, token)
        v, r, s = split_signature(authorization.signature)
        func = contract.functions.transferWithAuthorization

        async with self._send_lock(network):
            try:
                txn_builder = await func(
                    str(authorization.payer),
                    str(authorization.recipient),
                    authorization.amount,
                    authorization.valid_after,
                    authorization.valid_before,
                    authorization.nonce,
                    v,
                    r,
                    s,
                )
                txn_builder = txn_builder.with_owner(str(self._address)).fee_limit(
                    self._fee_limit
                )
                txn = await asyncio.wait_for(txn_builder.build(), self._request_timeout)
            except (TvmError, ValidationError) as e:
                raise TransactionRejectedError(f"transferWithAuthorization rejected: {e}") from e
            except RPC_ERRORS as e:
                raise TransientRpcError(f"building transaction failed: {e}") from e

            txn = txn.sign(self._private_key)
            tx_hash = txn.txid
            logger.info(
                "[TRON] Broadcasting transferWithAuthorization on %s: tx=%s, token=%s",
                network,
                tx_hash,
                token,
            )
            try:
                await asyncio.wait_for(txn.broadcast(), self._request_timeout)
            except Exception as e:
                # tronpy reports node-side rejections and transport failures alike;
                # either way the signed transaction may already be known to a node
                raise BroadcastUncertainError(tx_hash, f"broadcast failed: {e}") from e
        return tx_hash

    async def wait_for_receipt(
        self, network: str, tx_hash: str, timeout: float
    ) -> TransactionReceipt:
        client = self._ensure_client(network)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                info = await asyncio.wait_for(
                    client.get_transaction_info(tx_hash), self._request_timeout
                )
            except TransactionNotFound:
                info = None
            except RPC_ERRORS as e:
                raise TransientRpcError(f"receipt lookup failed: {e}") from e

            if info and info.get("blockNumber"):
                result: Optional[str] = info.get("receipt", {}).get("result")
                return TransactionReceipt(
                    tx_hash=tx_hash,
                    success=result == "SUCCESS",
                    block_number=info.get("blockNumber"),
                )
            if loop.time() + self._poll_interval > deadline:
                raise ReceiptTimeoutError(tx_hash, timeout)
            await asyncio.sleep(self._poll_interval)

    async def close(self) -> None:
        for client in self._tron_clients.values():
            await client.close()
        self._tron_clients.clear()
        self._contracts.clear()
