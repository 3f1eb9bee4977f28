"""
Tests for decoding wire payloads into PaymentTerms / PaymentAuthorization.
"""

import pytest

from helpers import FUJI, MERCHANT, NONCE, USDC_FUJI, make_payload, make_requirements
from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.exceptions import DecodingError, InvalidAddressError
from x402_facilitator.models import (
    UINT256_MAX,
    decode_authorization,
    decode_terms,
    infer_family,
    parse_uint256,
)
from x402_facilitator.types import PaymentRequirements, TransferAuthorization


def _with_authorization(payload, **changes):
    auth = payload.payload.authorization.model_dump(by_alias=True)
    auth.update(changes)
    return payload.model_copy(
        update={
            "payload": payload.payload.model_copy(
                update={"authorization": TransferAuthorization(**auth)}
            )
        }
    )


class TestDecodeTerms:
    def test_decodes_requirements(self):
        terms = decode_terms(make_requirements())
        assert terms.network == FUJI
        assert terms.family == ChainFamily.EVM
        assert terms.asset == AddressRef.parse(USDC_FUJI, ChainFamily.EVM)
        assert terms.pay_to == AddressRef.parse(MERCHANT, ChainFamily.EVM)
        assert terms.min_amount == 1_000_000
        assert terms.token_name == "USD Coin"
        assert terms.token_version == "2"

    def test_integer_amount_is_accepted(self):
        requirements = PaymentRequirements(
            scheme="exact",
            network=FUJI,
            maxAmountRequired=2**200,
            payTo=MERCHANT,
            asset=USDC_FUJI,
        )
        assert decode_terms(requirements).min_amount == 2**200

    def test_bad_pay_to(self):
        with pytest.raises(InvalidAddressError):
            decode_terms(make_requirements(pay_to="0xnot-an-address"))

    def test_bad_amount(self):
        with pytest.raises(DecodingError):
            decode_terms(make_requirements(amount="1e6"))

    def test_missing_extra(self):
        terms = decode_terms(make_requirements(extra={}))
        assert terms.token_name is None
        assert terms.token_version is None


class TestDecodeAuthorization:
    def test_decodes_payload(self):
        requirements = make_requirements()
        auth = decode_authorization(make_payload(requirements, value=1_500_000), ChainFamily.EVM)
        assert auth.amount == 1_500_000
        assert auth.recipient == AddressRef.parse(MERCHANT, ChainFamily.EVM)
        assert auth.nonce == bytes.fromhex(NONCE[2:])
        assert len(auth.signature) == 65
        assert auth.valid_before > auth.valid_after

    @pytest.mark.parametrize(
        "field, value",
        [
            ("value", "-1"),
            ("value", "12abc"),
            ("value", str(UINT256_MAX + 1)),
            ("validBefore", ""),
            ("nonce", "0x1234"),
            ("nonce", "0x" + "zz" * 32),
        ],
    )
    def test_malformed_fields_carry_payer(self, field, value):
        payload = _with_authorization(make_payload(make_requirements()), **{field: value})
        with pytest.raises(DecodingError) as exc_info:
            decode_authorization(payload, ChainFamily.EVM)
        assert exc_info.value.payer is not None

    def test_short_signature(self):
        payload = make_payload(make_requirements(), signature="0x" + "ab" * 64)
        with pytest.raises(DecodingError, match="signature"):
            decode_authorization(payload, ChainFamily.EVM)

    def test_bad_payer_address(self):
        payload = make_payload(
            make_requirements(), from_addr="0xdeadbeef", signature="0x" + "ab" * 65
        )
        with pytest.raises(InvalidAddressError):
            decode_authorization(payload, ChainFamily.EVM)


class TestParseUint256:
    def test_max_value(self):
        assert parse_uint256(str(UINT256_MAX), "value") == UINT256_MAX

    def test_unicode_digits_rejected(self):
        with pytest.raises(DecodingError):
            parse_uint256("١٢", "value")


class TestInferFamily:
    def test_known_network(self):
        assert infer_family("tron-nile", "0x" + "00" * 20) == ChainFamily.TRON

    def test_unknown_network_guesses_from_address(self):
        assert infer_family("ethereum-mainnet", MERCHANT) == ChainFamily.EVM
        tron_address = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"
        assert infer_family("tron-unknown", tron_address) == ChainFamily.TRON
