import logging
import time
from typing import Callable, Optional

from jose import jwt, JWTError
from pydantic import ValidationError

from app.core.errors import ContentMismatch, CredentialExpired, InvalidSignature, TypeMismatch
from app.modules.access.schemas import AccessClaims, PAYMENT_CREDENTIAL_TYPE

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60

class CredentialService:
    """
    Mints and checks payment access credentials: HMAC-signed JWTs
    (header.claims.signature, base64url, '.'-joined). Stateless; expiry is
    the only way a credential stops working.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    def build_claims(
        self,
        content_id: str,
        transaction_signature: str,
        payer_address: str,
        ttl_seconds: Optional[int] = None,
    ) -> AccessClaims:
        now = int(self.clock())
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        return AccessClaims(
            content_id=str(content_id),
            transaction_signature=transaction_signature,
            payer_address=payer_address or "unknown",
            type=PAYMENT_CREDENTIAL_TYPE,
            issued_at=now,
            expires_at=now + ttl,
        )

    def issue(self, claims: AccessClaims) -> str:
        return jwt.encode(claims.to_token_payload(), self.secret_key, algorithm=self.algorithm)

    def issue_for_payment(
        self,
        content_id: str,
        transaction_signature: str,
        payer_address: str,
        ttl_seconds: Optional[int] = None,
    ) -> str:
        claims = self.build_claims(content_id, transaction_signature, payer_address, ttl_seconds)
        return self.issue(claims)

    def validate(self, token: str) -> AccessClaims:
        if not token or not isinstance(token, str):
            raise InvalidSignature("Missing credential")

        try:
            # Signature is checked with a constant-time compare inside jose
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            logger.info(f"[Access] Rejected credential: {e}")
            raise InvalidSignature(str(e))

        if payload.get("type") != PAYMENT_CREDENTIAL_TYPE:
            logger.info(f"[Access] Rejected credential type: {payload.get('type')!r}")
            raise TypeMismatch()

        try:
            claims = AccessClaims.model_validate(payload)
        except ValidationError as e:
            logger.info(f"[Access] Rejected malformed claims: {e.error_count()} errors")
            raise InvalidSignature("Malformed claims")

        if self.clock() >= claims.expires_at:
            logger.info(f"[Access] Credential for {claims.content_id} expired at {claims.expires_at}")
            raise CredentialExpired()

        return claims

    def authorize(self, token: str, content_id: str) -> AccessClaims:
        claims = self.validate(token)
        if claims.content_id != str(content_id):
            logger.info(f"[Access] Credential for {claims.content_id} presented for {content_id}")
            raise ContentMismatch()
        return claims
