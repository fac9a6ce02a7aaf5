"""
On-chain payment verification.

A verification strategy is picked once at startup from configuration:
LedgerVerification re-derives the payment from finalized ledger state,
SimulatedVerification accepts prefixed test signatures and only exists
outside production.
"""
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from app.core.config import Settings
from app.core.errors import (
    AmountMismatch,
    InvalidInput,
    NoPaymentFound,
    RecipientMismatch,
    TransactionFailed,
)
from app.core.validation import validate_signature
from app.modules.content.models import ContentListing
from app.modules.ledger.client import LedgerClient, RawTransaction
from app.modules.ledger.transfers import TransferDelta, extract_transfers

logger = logging.getLogger(__name__)

class MatchKind(str, enum.Enum):
    OWNER = "owner"
    ACCOUNT_KEY = "account_key"
    SIMULATED = "simulated"

@dataclass(frozen=True)
class RecipientMatch:
    kind: MatchKind
    delta: TransferDelta

@dataclass(frozen=True)
class VerifiedPaymentDetails:
    signature: str
    recipient: str
    amount: Decimal
    token_mint: str
    block_time: Optional[int]
    slot: Optional[int]
    match: MatchKind
    payer_address: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "signature": self.signature,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "mint": self.token_mint,
            "block_time": self.block_time,
            "slot": self.slot,
            "match": self.match.value,
        }

def match_recipient(
    deltas: List[TransferDelta],
    recipient_address: str,
    account_keys: List[str],
) -> Optional[RecipientMatch]:
    """
    1. a credit to a token account owned by the recipient;
    2. otherwise, if the recipient is among the transaction's account keys,
       the first credit of any owner (relayed transfers whose owner field
       does not line up with the expected wallet).
    """
    for delta in deltas:
        if delta.owner_address == recipient_address and delta.is_credit:
            return RecipientMatch(MatchKind.OWNER, delta)

    if recipient_address in account_keys:
        for delta in deltas:
            if delta.is_credit:
                return RecipientMatch(MatchKind.ACCOUNT_KEY, delta)
    return None

def amount_tolerance(expected: Decimal, ratio: Decimal, floor: Decimal) -> Decimal:
    return max(expected * ratio, floor)

def check_amount(received: Decimal, expected: Decimal, ratio: Decimal, floor: Decimal) -> None:
    if abs(received - expected) > amount_tolerance(expected, ratio, floor):
        raise AmountMismatch(expected=expected, received=received)

def infer_payer(deltas: List[TransferDelta]) -> Optional[str]:
    for delta in deltas:
        if delta.balance_change < 0 and delta.owner_address:
            return delta.owner_address
    return None

class VerificationStrategy(ABC):

    @abstractmethod
    def validate_signature(self, signature: str) -> str:
        """Reject malformed signatures before any I/O."""

    @abstractmethod
    async def confirm(self, signature: str, listing: ContentListing) -> VerifiedPaymentDetails:
        """Confirm the signature pays for the listing or raise a PaymentRejected."""

class LedgerVerification(VerificationStrategy):

    def __init__(
        self,
        ledger: LedgerClient,
        tolerance_ratio: Decimal = Decimal("0.001"),
        tolerance_floor: Decimal = Decimal("0.01"),
    ):
        self.ledger = ledger
        self.tolerance_ratio = tolerance_ratio
        self.tolerance_floor = tolerance_floor

    def validate_signature(self, signature: str) -> str:
        return validate_signature(signature)

    async def confirm(self, signature: str, listing: ContentListing) -> VerifiedPaymentDetails:
        # LedgerUnavailable / TransactionNotFound propagate, no retry here
        tx = await self.ledger.fetch_transaction(signature)
        return self.evaluate(tx, listing)

    def evaluate(self, tx: RawTransaction, listing: ContentListing) -> VerifiedPaymentDetails:
        # A failed transaction's balance changes are never trusted
        if not tx.succeeded:
            raise TransactionFailed(details={"error": tx.error})

        mint = listing.price_currency
        deltas = extract_transfers(tx, mint)
        if not deltas:
            raise NoPaymentFound()

        match = match_recipient(deltas, listing.recipient_address, tx.account_keys)
        if match is None:
            raise RecipientMismatch(details={
                "expected_recipient": listing.recipient_address,
                "found_transfers": [
                    {"owner": d.owner_address, "amount": str(d.balance_change)} for d in deltas
                ],
            })

        if match.kind == MatchKind.ACCOUNT_KEY:
            logger.warning(
                f"[Verifier] {tx.signature}: recipient {listing.recipient_address} matched by account key only; "
                f"accepting credit to {match.delta.owner_address} (lenient match)"
            )

        expected = Decimal(listing.price_amount)
        check_amount(match.delta.balance_change, expected, self.tolerance_ratio, self.tolerance_floor)

        return VerifiedPaymentDetails(
            signature=tx.signature,
            recipient=match.delta.owner_address or listing.recipient_address,
            amount=match.delta.balance_change,
            token_mint=mint,
            block_time=tx.block_time,
            slot=tx.slot,
            match=match.kind,
            payer_address=infer_payer(deltas),
        )

class SimulatedVerification(VerificationStrategy):
    """Development/test only. Accepts any signature carrying the configured prefix."""

    def __init__(self, prefix: str = "sim_"):
        if not prefix:
            raise ValueError("Simulated verification needs a signature prefix")
        self.prefix = prefix

    def validate_signature(self, signature: str) -> str:
        validate_signature(signature, simulated_prefix=self.prefix)
        if not signature.startswith(self.prefix):
            raise InvalidInput(f"Simulated verification only accepts '{self.prefix}' signatures")
        return signature

    async def confirm(self, signature: str, listing: ContentListing) -> VerifiedPaymentDetails:
        logger.warning(f"[Verifier] Accepting simulated transaction {signature} for {listing.id}")
        return VerifiedPaymentDetails(
            signature=signature,
            recipient=listing.recipient_address,
            amount=Decimal(listing.price_amount),
            token_mint=listing.price_currency,
            block_time=int(datetime.now(timezone.utc).timestamp()),
            slot=None,
            match=MatchKind.SIMULATED,
        )

def build_strategy(settings: Settings, ledger: Optional[LedgerClient] = None) -> VerificationStrategy:
    if settings.VERIFICATION_MODE == "simulated":
        if settings.ENVIRONMENT == "production":
            raise RuntimeError("Simulated verification cannot run in production")
        logger.warning("[Verifier] Simulated verification enabled. Payments are NOT checked on chain.")
        return SimulatedVerification(settings.SIMULATED_SIGNATURE_PREFIX)

    if ledger is None:
        raise ValueError("Ledger verification needs a LedgerClient")
    return LedgerVerification(
        ledger=ledger,
        tolerance_ratio=settings.amount_tolerance_ratio,
        tolerance_floor=settings.AMOUNT_TOLERANCE_FLOOR,
    )
