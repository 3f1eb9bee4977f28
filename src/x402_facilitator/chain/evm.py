"""
EvmChainClient - EIP-3009 chain client for EVM networks using web3.py
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

import aiohttp
from eth_account import Account
from eth_utils import to_hex
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

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

T = TypeVar("T")

# Failures of the JSON-RPC transport or node that leave nothing sent
RPC_ERRORS = (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


class EvmChainClient(ChainClient):
    """EVM chain client implementation using web3.py

    One AsyncWeb3 instance is created lazily per network. Transactions from
    the facilitator account are serialized per network so that account nonces
    are allocated one at a time.
    """

    family = ChainFamily.EVM

    def __init__(
        self,
        private_key: str,
        rpc_urls: Optional[dict[str, str]] = None,
        request_timeout: float = 10.0,
        poll_interval: float = 1.0,
    ) -> None:
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._account = Account.from_key(private_key)
        self._address = AddressRef.parse(self._account.address, ChainFamily.EVM)
        self._rpc_urls = dict(rpc_urls or {})
        self._request_timeout = request_timeout
        self._poll_interval = poll_interval
        self._web3_clients: dict[str, AsyncWeb3] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}
        logger.debug("EvmChainClient initialized, address=%s", self._address)

    def address(self) -> AddressRef:
        return self._address

    def _ensure_web3(self, network: str) -> AsyncWeb3:
        """Lazy initialize async web3 client for the given network."""
        if network not in self._web3_clients:
            provider_uri = self._rpc_urls.get(network) or NetworkConfig.get_rpc_url(network)
            if not provider_uri:
                raise ConfigurationError(f"No RPC URL configured for {network}")
            w3 = AsyncWeb3(AsyncHTTPProvider(provider_uri))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._web3_clients[network] = w3
        return self._web3_clients[network]

    def _send_lock(self, network: str) -> asyncio.Lock:
        lock = self._send_locks.get(network)
        if lock is None:
            lock = self._send_locks[network] = asyncio.Lock()
        return lock

    def _contract(self, w3: AsyncWeb3, token: AddressRef) -> Any:
        return w3.eth.contract(address=token.to_evm_format(), abi=EIP3009_ABI)

    async def _rpc(self, call: Awaitable[T], what: str) -> T:
        """Await a read-only RPC call with the request timeout"""
        try:
            return await asyncio.wait_for(call, self._request_timeout)
        except RPC_ERRORS as e:
            raise TransientRpcError(f"{what} failed: {e}") from e

    async def balance_of(self, network: str, token: AddressRef, owner: AddressRef) -> int:
        contract = self._contract(self._ensure_web3(network), token)
        return await self._rpc(
            contract.functions.balanceOf(owner.to_evm_format()).call(), "balanceOf"
        )

    async def authorization_used(
        self, network: str, token: AddressRef, authorizer: AddressRef, nonce: bytes
    ) -> bool:
        contract = self._contract(self._ensure_web3(network), token)
        used = await self._rpc(
            contract.functions.authorizationState(authorizer.to_evm_format(), nonce).call(),
            "authorizationState",
        )
        return bool(used)

    async def transfer_with_authorization(
        self, network: str, token: AddressRef, authorization: PaymentAuthorization
    ) -> str:
        w3 = self._ensure_web3(network)
        contract = self._contract(w3, token)
        v, r, s = split_signature(authorization.signature)
        func = contract.functions.transferWithAuthorization(
            authorization.payer.to_evm_format(),
            authorization.recipient.to_evm_format(),
            authorization.amount,
            authorization.valid_after,
            authorization.valid_before,
            authorization.nonce,
            v,
            r,
            s,
        )
        sender = self._address.to_evm_format()

        async with self._send_lock(network):
            try:
                tx = await asyncio.wait_for(
                    func.build_transaction(
                        {
                            "from": sender,
                            "nonce": await w3.eth.get_transaction_count(sender, "pending"),
                            "chainId": await w3.eth.chain_id,
                        }
                    ),
                    self._request_timeout,
                )
            except ContractLogicError as e:
                raise TransactionRejectedError(f"transferWithAuthorization reverted: {e}") from e
            except RPC_ERRORS as e:
                raise TransientRpcError(f"building transaction failed: {e}") from e

            signed = self._account.sign_transaction(tx)
            tx_hash = to_hex(signed.hash)
            logger.info(
                "[EVM] Broadcasting transferWithAuthorization on %s: tx=%s, token=%s",
                network,
                tx_hash,
                token,
            )
            try:
                await asyncio.wait_for(
                    w3.eth.send_raw_transaction(signed.raw_transaction), self._request_timeout
                )
            except RPC_ERRORS as e:
                raise BroadcastUncertainError(tx_hash, f"send_raw_transaction failed: {e}") from e
        return tx_hash

    async def wait_for_receipt(
        self, network: str, tx_hash: str, timeout: float
    ) -> TransactionReceipt:
        w3 = self._ensure_web3(network)
        try:
            receipt = await w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self._poll_interval
            )
        except TimeExhausted as e:
            raise ReceiptTimeoutError(tx_hash, timeout) from e
        except RPC_ERRORS as e:
            raise TransientRpcError(f"receipt lookup failed: {e}") from e
        return TransactionReceipt(
            tx_hash=tx_hash,
            success=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
        )

    async def close(self) -> None:
        for w3 in self._web3_clients.values():
            await w3.provider.disconnect()
        self._web3_clients.clear()
