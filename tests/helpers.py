"""
Shared builders for signed x402 payloads
"""

from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_facilitator.abi import TRANSFER_AUTH_EIP712_TYPES, TRANSFER_AUTH_PRIMARY_TYPE
from x402_facilitator.address import AddressRef
from x402_facilitator.config import NetworkConfig
from x402_facilitator.types import PaymentPayload, PaymentRequirements

NOW = 1_700_000_000

FUJI = "avalanche-fuji"
USDC_FUJI = "0x5425890298aed601595a70AB815c96711a31Bc65"
MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
OTHER_MERCHANT = "0x1111111111111111111111111111111111111111"

NILE = "tron-nile"
USDT_NILE = "TXYZopYRdj2D9XRtbG411XZZ3kM5VkAeBf"

PAYER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
PAYER_ADDRESS = Account.from_key(PAYER_KEY).address

NONCE = "0x" + "cd" * 32
TX_HASH = "0x" + "ab" * 32


class FixedClock:
    """Clock whose time only moves when told to"""

    def __init__(self, value: int = NOW) -> None:
        self.value = value

    def now(self) -> int:
        return self.value

    def advance(self, seconds: int) -> None:
        self.value += seconds


def make_requirements(
    network=FUJI,
    scheme="exact",
    amount="1000000",
    pay_to=MERCHANT,
    asset=USDC_FUJI,
    extra=None,
):
    if extra is None:
        extra = {"name": "USD Coin", "version": "2"}
    return PaymentRequirements(
        scheme=scheme,
        network=network,
        maxAmountRequired=amount,
        resource="https://api.example.com/premium",
        description="Premium content",
        mimeType="application/json",
        payTo=pay_to,
        maxTimeoutSeconds=60,
        asset=asset,
        extra=extra or None,
    )


def sign_authorization(authorization, requirements, private_key=PAYER_KEY, chain_id=None):
    """Sign a wire authorization the way an x402 client does"""
    network = requirements.network
    family = NetworkConfig.get_family(network)
    extra = requirements.extra
    domain = {
        "name": extra.name if extra and extra.name else "USD Coin",
        "version": extra.version if extra and extra.version else "2",
        "chainId": chain_id if chain_id is not None else NetworkConfig.get_chain_id(network),
        "verifyingContract": AddressRef.parse(requirements.asset, family).to_evm_format(),
    }
    message = {
        "from": AddressRef.parse(authorization["from"], family).to_evm_format(),
        "to": AddressRef.parse(authorization["to"], family).to_evm_format(),
        "value": int(authorization["value"]),
        "validAfter": int(authorization["validAfter"]),
        "validBefore": int(authorization["validBefore"]),
        "nonce": bytes.fromhex(authorization["nonce"][2:]),
    }
    signable = encode_typed_data(
        full_message={
            "types": TRANSFER_AUTH_EIP712_TYPES,
            "primaryType": TRANSFER_AUTH_PRIMARY_TYPE,
            "domain": domain,
            "message": message,
        }
    )
    signed = Account.sign_message(signable, private_key)
    return "0x" + bytes(signed.signature).hex()


def make_payload(
    requirements,
    value=None,
    to=None,
    valid_after=NOW - 60,
    valid_before=NOW + 300,
    nonce=NONCE,
    scheme=None,
    network=None,
    private_key=PAYER_KEY,
    from_addr=None,
    signature=None,
    chain_id=None,
):
    """Build a PaymentPayload signed by *private_key* for *requirements*"""
    family = NetworkConfig.get_family(requirements.network)
    if from_addr is None:
        payer = Account.from_key(private_key).address
        from_addr = str(AddressRef.parse(payer, family))
    authorization = {
        "from": from_addr,
        "to": to or requirements.pay_to,
        "value": str(value if value is not None else requirements.max_amount_required),
        "validAfter": str(valid_after),
        "validBefore": str(valid_before),
        "nonce": nonce,
    }
    if signature is None:
        signature = sign_authorization(authorization, requirements, private_key, chain_id)
    return PaymentPayload(
        x402Version=1,
        scheme=scheme or requirements.scheme,
        network=network or requirements.network,
        payload={"signature": signature, "authorization": authorization},
    )
