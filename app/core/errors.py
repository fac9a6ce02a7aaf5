from decimal import Decimal
from typing import Any, Dict, Optional


class PaywallError(Exception):
    """Base exception for paywall operations."""
    http_status = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


class InvalidInput(PaywallError):
    """Request input is malformed."""
    http_status = 400
    code = "invalid_input"


class Forbidden(PaywallError):
    """Not authorized to perform this action."""
    http_status = 403
    code = "forbidden"


# Not found

class ContentNotFound(PaywallError):
    """Content not found."""
    http_status = 404
    code = "content_not_found"


class ContentExpired(PaywallError):
    """Content has expired."""
    http_status = 410
    code = "content_expired"


# Business-rule rejections. Terminal for the submitted signature.

class PaymentRejected(PaywallError):
    """Payment could not be verified."""
    http_status = 402
    code = "payment_rejected"


class TransactionNotFound(PaymentRejected):
    """Transaction not found on blockchain."""
    code = "transaction_not_found"


class TransactionFailed(PaymentRejected):
    """Transaction failed on blockchain."""
    code = "transaction_failed"


class NoPaymentFound(PaymentRejected):
    """No transfers of the payment token found in transaction."""
    code = "no_payment_found"


class RecipientMismatch(PaymentRejected):
    """Expected recipient not found in transaction."""
    code = "recipient_mismatch"


class AmountMismatch(PaymentRejected):
    """Transfer amount does not match expected amount."""
    code = "amount_mismatch"

    def __init__(self, expected: Decimal, received: Decimal):
        super().__init__(details={
            "expected": str(expected),
            "received": str(received),
            "difference": str(abs(received - expected)),
        })
        self.expected = expected
        self.received = received


class SignatureAlreadyUsed(PaymentRejected):
    """Transaction signature was already used to pay for other content."""
    code = "signature_already_used"


# Infrastructure. Transient, the caller retries the whole attempt.

class LedgerUnavailable(PaywallError):
    """Blockchain RPC is unavailable."""
    http_status = 503
    code = "ledger_unavailable"
    retryable = True


class StorageError(PaywallError):
    """Payment storage is unavailable."""
    http_status = 503
    code = "storage_error"
    retryable = True


class PaymentNotRecorded(StorageError):
    """Payment verified on chain but could not be recorded."""
    code = "payment_not_recorded"


# Trust boundary. Never retried, never explained to the client.

class CredentialError(PaywallError):
    """Access denied."""
    http_status = 403
    code = "access_denied"


class InvalidSignature(CredentialError):
    """Access denied."""


class CredentialExpired(CredentialError):
    """Access denied."""


class TypeMismatch(CredentialError):
    """Access denied."""


class ContentMismatch(CredentialError):
    """Access denied."""
