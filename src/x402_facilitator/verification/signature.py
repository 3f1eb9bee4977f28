"""
EIP-712 signature verification of TransferWithAuthorization
"""

import logging

from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_facilitator.address import AddressRef
from x402_facilitator.config import NetworkConfig
from x402_facilitator.exceptions import InvalidAddressError, InvalidSignatureError
from x402_facilitator.models import PaymentAuthorization, PaymentTerms
from x402_facilitator.tokens import TokenRegistry
from x402_facilitator.utils.eip712 import (
    build_eip712_domain,
    build_eip712_message,
    build_typed_data,
)

logger = logging.getLogger(__name__)


class SignatureVerifier:
    """Recovers the signer of an authorization and compares it to the payer.

    The token's EIP-712 name and version come from ``requirements.extra`` and
    fall back to the token registry. TRON tokens use the same encoding with
    addresses rendered as 0x-hex (TIP-712).
    """

    def domain_for(self, requirements: PaymentTerms) -> dict:
        """
        Raises:
            InvalidSignatureError: If the token's EIP-712 domain is unknown
        """
        name = requirements.token_name
        version = requirements.token_version
        if name is None or version is None:
            token = TokenRegistry.find_by_address(requirements.network, requirements.asset)
            if token is not None:
                name = name if name is not None else token.name
                version = version if version is not None else token.version
        if name is None or version is None:
            raise InvalidSignatureError(
                f"EIP-712 domain of {requirements.asset} on {requirements.network} is unknown"
            )
        info = NetworkConfig.get(requirements.network)
        if info is None:
            raise InvalidSignatureError(f"no chain id for network {requirements.network!r}")
        return build_eip712_domain(name, version, info.chain_id, requirements.asset)

    def recover(
        self, authorization: PaymentAuthorization, requirements: PaymentTerms
    ) -> AddressRef:
        """Recover the signer as an address of the payer's chain family.

        Raises:
            InvalidSignatureError: If encoding or recovery fails
        """
        domain = self.domain_for(requirements)
        typed_data = build_typed_data(domain, build_eip712_message(authorization))
        try:
            signable = encode_typed_data(full_message=typed_data)
            recovered = Account.recover_message(signable, signature=authorization.signature)
        except Exception as e:
            # eth_account / eth_keys raise a variety of types for bad input
            raise InvalidSignatureError(
                f"signature recovery failed: {e}", payer=authorization.payer
            ) from e
        try:
            return AddressRef.from_evm_hex(recovered, authorization.payer.family)
        except InvalidAddressError as e:
            raise InvalidSignatureError(str(e), payer=authorization.payer) from e

    def verify(self, authorization: PaymentAuthorization, requirements: PaymentTerms) -> None:
        """
        Raises:
            InvalidSignatureError: If the signature was not produced by the payer
        """
        try:
            signer = self.recover(authorization, requirements)
        except InvalidSignatureError as e:
            e.payer = authorization.payer
            raise
        if signer != authorization.payer:
            logger.info(
                "Signature mismatch: expected=%s, recovered=%s", authorization.payer, signer
            )
            raise InvalidSignatureError(
                "signature does not match the payer", payer=authorization.payer
            )
