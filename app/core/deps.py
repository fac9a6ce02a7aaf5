from fastapi import Depends, Header, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import Settings
from app.core.retry import RetryPolicy
from app.modules.access.service import CredentialService
from app.modules.payments.service import PaymentVerifier

# auto_error=False so we can fall back to the custom header or query string
bearer_scheme = HTTPBearer(auto_error=False)

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credentials

def get_payment_verifier(request: Request) -> PaymentVerifier:
    return request.app.state.verifier

def get_retry_policy(request: Request) -> RetryPolicy:
    return request.app.state.retry_policy

def get_payment_proof(
    payment: str | None = Query(None),
    x_payment_proof: str | None = Header(None, alias="X-Payment-Proof"),
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Credential from X-Payment-Proof header, Authorization: Bearer, or ?payment=."""
    if x_payment_proof:
        return x_payment_proof
    if bearer and bearer.credentials:
        return bearer.credentials
    return payment
