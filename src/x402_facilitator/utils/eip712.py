"""
EIP-712 helpers for TransferWithAuthorization
"""

from typing import Any

from x402_facilitator.abi import TRANSFER_AUTH_EIP712_TYPES, TRANSFER_AUTH_PRIMARY_TYPE
from x402_facilitator.address import AddressRef
from x402_facilitator.models import SIGNATURE_LENGTH, PaymentAuthorization


def build_eip712_domain(
    name: str, version: str, chain_id: int, verifying_contract: AddressRef
) -> dict[str, Any]:
    """Build the token's EIP-712 domain.

    TRON tokens sign over the same domain with the contract rendered as 0x-hex.
    """
    return {
        "name": name,
        "version": version,
        "chainId": chain_id,
        "verifyingContract": verifying_contract.to_evm_format(),
    }


def build_eip712_message(authorization: PaymentAuthorization) -> dict[str, Any]:
    return {
        "from": authorization.payer.to_evm_format(),
        "to": authorization.recipient.to_evm_format(),
        "value": authorization.amount,
        "validAfter": authorization.valid_after,
        "validBefore": authorization.valid_before,
        "nonce": authorization.nonce,
    }


def build_typed_data(domain: dict[str, Any], message: dict[str, Any]) -> dict[str, Any]:
    """Full typed-data document accepted by ``encode_typed_data(full_message=...)``"""
    return {
        "types": TRANSFER_AUTH_EIP712_TYPES,
        "primaryType": TRANSFER_AUTH_PRIMARY_TYPE,
        "domain": domain,
        "message": message,
    }


def split_signature(signature: bytes) -> tuple[int, bytes, bytes]:
    """Split a 65-byte r||s||v signature into (v, r, s).

    v is normalized to 27/28 as expected by transferWithAuthorization.

    Raises:
        ValueError: If the signature is not 65 bytes long
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    r = signature[:32]
    s = signature[32:64]
    v = signature[64]
    if v < 27:
        v += 27
    return v, r, s
