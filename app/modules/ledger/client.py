import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import LedgerUnavailable, TransactionNotFound

logger = logging.getLogger(__name__)

ALLOWED_COMMITMENTS = ("confirmed", "finalized")

@dataclass(frozen=True)
class TokenBalance:
    account_index: int
    mint: str
    owner: Optional[str]
    amount: Decimal

    @classmethod
    def from_rpc(cls, entry: Dict[str, Any]) -> "TokenBalance":
        ui = entry.get("uiTokenAmount") or {}
        # Prefer the raw integer amount to avoid float rounding
        raw = ui.get("amount")
        decimals = ui.get("decimals")
        if raw is not None and decimals is not None:
            amount = Decimal(raw).scaleb(-int(decimals))
        elif ui.get("uiAmountString") is not None:
            amount = Decimal(ui["uiAmountString"])
        else:
            amount = Decimal(str(ui.get("uiAmount") or 0))
        return cls(
            account_index=int(entry["accountIndex"]),
            mint=entry.get("mint", ""),
            owner=entry.get("owner"),
            amount=amount,
        )

@dataclass(frozen=True)
class RawTransaction:
    signature: str
    slot: Optional[int]
    block_time: Optional[int]
    error: Any
    account_keys: List[str] = field(default_factory=list)
    pre_token_balances: List[TokenBalance] = field(default_factory=list)
    post_token_balances: List[TokenBalance] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def from_rpc(cls, signature: str, result: Dict[str, Any]) -> "RawTransaction":
        meta = result.get("meta") or {}
        message = (result.get("transaction") or {}).get("message") or {}

        keys = []
        for key in message.get("accountKeys") or []:
            # jsonParsed encoding returns {"pubkey": ...}, json encoding returns plain strings
            keys.append(key["pubkey"] if isinstance(key, dict) else str(key))
        loaded = meta.get("loadedAddresses") or {}
        keys.extend(loaded.get("writable") or [])
        keys.extend(loaded.get("readonly") or [])

        return cls(
            signature=signature,
            slot=result.get("slot"),
            block_time=result.get("blockTime"),
            error=meta.get("err"),
            account_keys=keys,
            pre_token_balances=[TokenBalance.from_rpc(b) for b in meta.get("preTokenBalances") or []],
            post_token_balances=[TokenBalance.from_rpc(b) for b in meta.get("postTokenBalances") or []],
        )

class LedgerClient:
    """
    Read-only Solana JSON-RPC connector.
    Constructed once at startup and shared; call close() on shutdown.
    """

    def __init__(
        self,
        endpoint: str,
        commitment: str = "finalized",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if commitment not in ALLOWED_COMMITMENTS:
            raise ValueError(f"Unsupported commitment level: {commitment}")
        self.endpoint = endpoint
        self.commitment = commitment
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._request_id = 0

    async def close(self):
        await self._client.aclose()

    async def _rpc(self, method: str, params: list) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            resp = await self._client.post(self.endpoint, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            logger.error(f"[Ledger] {method} timed out: {e}")
            raise LedgerUnavailable("Blockchain RPC timed out")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[Ledger] {method} failed: {e}")
            raise LedgerUnavailable(f"Blockchain RPC error: {e}")

        if not isinstance(data, dict):
            logger.error(f"[Ledger] {method} returned a non-object body: {type(data).__name__}")
            raise LedgerUnavailable("Blockchain RPC returned a malformed response")
        if data.get("error"):
            logger.error(f"[Ledger] {method} returned error: {data['error']}")
            raise LedgerUnavailable("Blockchain RPC returned an error", details={"rpc_error": data["error"]})
        return data.get("result")

    async def fetch_transaction(self, signature: str) -> RawTransaction:
        result = await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            raise TransactionNotFound()
        try:
            return RawTransaction.from_rpc(signature, result)
        except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            # Decimal parse failures are ArithmeticError
            logger.error(f"[Ledger] Unparseable getTransaction result for {signature}: {e!r}")
            raise LedgerUnavailable("Blockchain RPC returned a malformed transaction")

    async def is_transaction_confirmed(self, signature: str) -> bool:
        result = await self._rpc(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        statuses = result.get("value") if isinstance(result, dict) else None
        status = statuses[0] if isinstance(statuses, list) and statuses else None
        if not isinstance(status, dict):
            return False
        return status.get("confirmationStatus") in ALLOWED_COMMITMENTS
