"""
Decoded, validated views of payment requirements and authorizations

The wire models in ``x402_facilitator.types`` carry untrusted strings; the
dataclasses here carry canonical addresses, integers and raw bytes and are
what the verification pipeline and the settlement orchestrator operate on.
"""

from dataclasses import dataclass

from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.config import NetworkConfig
from x402_facilitator.exceptions import DecodingError
from x402_facilitator.types import PaymentPayload, PaymentRequirements

UINT256_MAX = 2**256 - 1
NONCE_LENGTH = 32
SIGNATURE_LENGTH = 65


@dataclass(frozen=True)
class PaymentTerms:
    """What the resource server asks to be paid"""

    scheme: str
    network: str
    family: ChainFamily
    asset: AddressRef
    pay_to: AddressRef
    min_amount: int
    token_name: str | None = None
    token_version: str | None = None


@dataclass(frozen=True)
class PaymentAuthorization:
    """A signed transferWithAuthorization presented by the payer"""

    scheme: str
    network: str
    payer: AddressRef
    recipient: AddressRef
    amount: int
    valid_after: int
    valid_before: int
    nonce: bytes
    signature: bytes


def infer_family(network: str, sample_address: str) -> ChainFamily:
    """Chain family of *network*, guessed from the address format for unknown networks."""
    info = NetworkConfig.get(network)
    if info is not None:
        return info.family
    if sample_address.startswith("0x"):
        return ChainFamily.EVM
    return ChainFamily.TRON


def parse_uint256(value: str, field: str) -> int:
    """Parse a decimal unsigned integer that must fit in uint256."""
    if not isinstance(value, str) or not (value.isascii() and value.isdigit()):
        raise DecodingError(f"{field} must be a decimal unsigned integer, got {value!r}")
    number = int(value)
    if number > UINT256_MAX:
        raise DecodingError(f"{field} exceeds uint256")
    return number


def parse_hex_bytes(value: str, length: int, field: str) -> bytes:
    body = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(body)
    except ValueError:
        raise DecodingError(f"{field} is not valid hex") from None
    if len(raw) != length:
        raise DecodingError(f"{field} must be {length} bytes, got {len(raw)}")
    return raw


def decode_terms(requirements: PaymentRequirements) -> PaymentTerms:
    """Decode payment requirements.

    Raises:
        DecodingError: If the amount is malformed
        InvalidAddressError: If the asset or payTo address is malformed
    """
    family = infer_family(requirements.network, requirements.pay_to)
    extra = requirements.extra
    return PaymentTerms(
        scheme=requirements.scheme,
        network=requirements.network,
        family=family,
        asset=AddressRef.parse(requirements.asset, family),
        pay_to=AddressRef.parse(requirements.pay_to, family),
        min_amount=parse_uint256(requirements.max_amount_required, "maxAmountRequired"),
        token_name=extra.name if extra else None,
        token_version=extra.version if extra else None,
    )


def decode_authorization(payload: PaymentPayload, family: ChainFamily) -> PaymentAuthorization:
    """Decode the client's payment payload.

    Addresses are parsed in *family* (the family of the required network), so a
    payload for a different family fails address validation instead of being
    silently reinterpreted.

    Raises:
        DecodingError: If a numeric, nonce or signature field is malformed
        InvalidAddressError: If an address is malformed
    """
    auth = payload.payload.authorization
    payer = AddressRef.parse(auth.from_address, family)
    try:
        return PaymentAuthorization(
            scheme=payload.scheme,
            network=payload.network,
            payer=payer,
            recipient=AddressRef.parse(auth.to, family),
            amount=parse_uint256(auth.value, "value"),
            valid_after=parse_uint256(auth.valid_after, "validAfter"),
            valid_before=parse_uint256(auth.valid_before, "validBefore"),
            nonce=parse_hex_bytes(auth.nonce, NONCE_LENGTH, "nonce"),
            signature=parse_hex_bytes(payload.payload.signature, SIGNATURE_LENGTH, "signature"),
        )
    except DecodingError as e:
        e.payer = payer
        raise
