from pydantic import BaseModel, ConfigDict, Field

PAYMENT_CREDENTIAL_TYPE = "payment"

class AccessClaims(BaseModel):
    """Claims carried by a payment access credential (wire names in aliases)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content_id: str = Field(alias="contentId")
    transaction_signature: str = Field(alias="signature")
    payer_address: str = Field(alias="payerWallet")
    type: str = PAYMENT_CREDENTIAL_TYPE
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")

    def to_token_payload(self) -> dict:
        return self.model_dump(by_alias=True)
