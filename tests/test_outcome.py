"""
Tests for error classification and outcome mapping.
"""

import pytest

from helpers import PAYER_ADDRESS, TX_HASH
from x402_facilitator.address import AddressRef, ChainFamily
from x402_facilitator.exceptions import (
    ClockError,
    ContractCallError,
    DecodingError,
    InvalidAddressError,
    ReceiverMismatchError,
)
from x402_facilitator.outcome import (
    SettleOutcome,
    VerifyOutcome,
    classify,
    http_status_for,
    to_settle_response,
    to_verify_response,
)
from x402_facilitator.reasons import INFRASTRUCTURE_REASONS, ErrorReason, Severity, severity_of

INFRA = Severity.INFRASTRUCTURE_FAULT
PAYER = AddressRef.parse(PAYER_ADDRESS, ChainFamily.EVM)


class TestClassify:
    @pytest.mark.parametrize(
        "error, reason, severity",
        [
            (ReceiverMismatchError(), ErrorReason.RECEIVER_MISMATCH, Severity.PROTOCOL_INVALID),
            (DecodingError("bad"), ErrorReason.DECODING_ERROR, Severity.PROTOCOL_INVALID),
            (ContractCallError(), ErrorReason.CONTRACT_CALL, INFRA),
            (InvalidAddressError("0x1"), ErrorReason.INVALID_ADDRESS, INFRA),
            (ClockError(), ErrorReason.CLOCK_ERROR, INFRA),
            (RuntimeError("boom"), ErrorReason.CONTRACT_CALL, INFRA),
        ],
    )
    def test_errors(self, error, reason, severity):
        assert classify(error) == (reason, severity)

    def test_reason(self):
        assert classify(ErrorReason.INVALID_TIMING) == (
            ErrorReason.INVALID_TIMING,
            Severity.PROTOCOL_INVALID,
        )

    def test_infrastructure_set(self):
        infra = {r for r in ErrorReason if severity_of(r) == Severity.INFRASTRUCTURE_FAULT}
        assert infra == set(INFRASTRUCTURE_REASONS)

    def test_wire_ids_are_snake_case(self):
        for reason in ErrorReason:
            assert reason.value == reason.name.lower()


class TestVerifyResponse:
    def test_valid(self):
        response = to_verify_response(VerifyOutcome.valid(PAYER))
        assert response.model_dump(by_alias=True, exclude_none=True) == {
            "isValid": True,
            "payer": PAYER_ADDRESS,
        }
        assert http_status_for(VerifyOutcome.valid(PAYER)) == 200

    def test_decoding_error_message(self):
        outcome = VerifyOutcome.from_error(DecodingError("value must be decimal", payer=PAYER))
        body = to_verify_response(outcome).model_dump(by_alias=True)
        assert body["invalidReason"] == "decoding_error"
        assert body["invalidMessage"] == "value must be decimal"
        assert http_status_for(outcome) == 200

    def test_infrastructure_detail_hidden(self):
        outcome = VerifyOutcome.from_error(ContractCallError("rpc http://node:8545 refused"))
        assert outcome.detail is None
        assert http_status_for(outcome) == 400


class TestSettleResponse:
    def test_success(self):
        outcome = SettleOutcome.succeeded("avalanche-fuji", TX_HASH, PAYER, 2**255)
        body = to_settle_response(outcome).model_dump(by_alias=True, exclude_none=True)
        assert body == {
            "success": True,
            "transaction": TX_HASH,
            "network": "avalanche-fuji",
            "payer": PAYER_ADDRESS,
            "amount": str(2**255),
        }

    def test_failure(self):
        outcome = SettleOutcome.failed(
            ErrorReason.TRANSACTION_FAILED, payer=PAYER, network="avalanche-fuji"
        )
        body = to_settle_response(outcome).model_dump(by_alias=True, exclude_none=True)
        assert body == {
            "success": False,
            "network": "avalanche-fuji",
            "payer": PAYER_ADDRESS,
            "errorReason": "transaction_failed",
        }
        assert http_status_for(outcome) == 200

    def test_in_progress(self):
        outcome = SettleOutcome.failed(ErrorReason.SETTLEMENT_IN_PROGRESS)
        assert outcome.in_progress
        assert http_status_for(outcome) == 200
