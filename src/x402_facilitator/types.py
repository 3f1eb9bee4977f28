"""
Type definitions for the x402 facilitator wire protocol
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

X402_VERSION = 1


class PaymentRequirementsExtra(BaseModel):
    """Extra information in payment requirements (EIP-712 domain of the asset)"""

    name: Optional[str] = None
    version: Optional[str] = None

    class Config:
        extra = "allow"


class PaymentRequirements(BaseModel):
    """Payment requirements declared by the resource server"""

    scheme: str
    network: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    resource: str = ""
    description: str = ""
    mime_type: str = Field("", alias="mimeType")
    output_schema: Optional[dict[str, Any]] = Field(None, alias="outputSchema")
    pay_to: str = Field(alias="payTo")
    max_timeout_seconds: int = Field(60, alias="maxTimeoutSeconds")
    asset: str
    extra: Optional[PaymentRequirementsExtra] = None

    @field_validator("max_amount_required", mode="before")
    @classmethod
    def _amount_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    class Config:
        populate_by_name = True
        frozen = True


class TransferAuthorization(BaseModel):
    """TransferWithAuthorization parameters as signed by the payer"""

    from_address: str = Field(alias="from")
    to: str
    value: str
    valid_after: str = Field(alias="validAfter")
    valid_before: str = Field(alias="validBefore")
    nonce: str  # 32-byte hex string (0x...)

    @field_validator("value", "valid_after", "valid_before", mode="before")
    @classmethod
    def _int_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    class Config:
        populate_by_name = True
        frozen = True


class ExactPaymentPayload(BaseModel):
    """Signed authorization of the exact (EIP-3009) scheme"""

    signature: str
    authorization: TransferAuthorization

    class Config:
        frozen = True


class PaymentPayload(BaseModel):
    """Payment payload sent by the client"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str
    payload: ExactPaymentPayload

    class Config:
        populate_by_name = True
        frozen = True


class VerifyRequest(BaseModel):
    """Body of POST /verify"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    payment_payload: PaymentPayload = Field(alias="paymentPayload")
    payment_requirements: PaymentRequirements = Field(alias="paymentRequirements")

    class Config:
        populate_by_name = True


class SettleRequest(VerifyRequest):
    """Body of POST /settle"""

    pass


class VerifyResponse(BaseModel):
    """Verification response from facilitator"""

    is_valid: bool = Field(alias="isValid")
    payer: Optional[str] = None
    invalid_reason: Optional[str] = Field(None, alias="invalidReason")
    invalid_message: Optional[str] = Field(None, alias="invalidMessage")

    class Config:
        populate_by_name = True


class SettleResponse(BaseModel):
    """Settlement response from facilitator"""

    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    amount: Optional[str] = None
    error_reason: Optional[str] = Field(None, alias="errorReason")

    class Config:
        populate_by_name = True


class SupportedKind(BaseModel):
    """Supported payment kind"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str

    class Config:
        populate_by_name = True


class SupportedResponse(BaseModel):
    """Supported response from facilitator"""

    kinds: list[SupportedKind]


class ErrorResponse(BaseModel):
    """Body of every 400 response"""

    error: str
