import json
from decimal import Decimal

import base58
import httpx

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "So11111111111111111111111111111111111111112"
SECRET = "test-secret-key"

def make_address(seed: int) -> str:
    """Deterministic valid 32-byte base58 address."""
    return base58.b58encode(bytes([seed]) * 32).decode()

def make_signature(seed: int) -> str:
    """Deterministic valid 64-byte base58 signature."""
    return base58.b58encode(bytes([seed]) * 64).decode()

CREATOR = make_address(1)
PAYER = make_address(2)
STRANGER = make_address(3)
CREATOR_ATA = make_address(4)
PAYER_ATA = make_address(5)

def token_balance(index, owner, amount, mint=USDC_MINT, decimals=6):
    raw = int(Decimal(str(amount)) * (10 ** decimals))
    return {
        "accountIndex": index,
        "mint": mint,
        "owner": owner,
        "uiTokenAmount": {
            "amount": str(raw),
            "decimals": decimals,
            "uiAmount": float(amount),
            "uiAmountString": str(amount),
        },
    }

def rpc_transaction(
    pre=None,
    post=None,
    err=None,
    account_keys=None,
    slot=250_000_000,
    block_time=1_700_000_000,
):
    """getTransaction result in jsonParsed encoding."""
    keys = account_keys if account_keys is not None else [PAYER, PAYER_ATA, CREATOR_ATA, CREATOR]
    return {
        "slot": slot,
        "blockTime": block_time,
        "meta": {
            "err": err,
            "preTokenBalances": pre or [],
            "postTokenBalances": post or [],
        },
        "transaction": {
            "signatures": [],
            "message": {
                "accountKeys": [{"pubkey": k, "signer": i == 0, "writable": True} for i, k in enumerate(keys)],
            },
        },
    }

def usdc_payment(amount, payer_before=Decimal("50"), recipient=CREATOR, **kwargs):
    """A payer -> recipient USDC transfer; the recipient token account is fresh."""
    amount = Decimal(str(amount))
    return rpc_transaction(
        pre=[token_balance(1, PAYER, payer_before)],
        post=[
            token_balance(1, PAYER, payer_before - amount),
            token_balance(2, recipient, amount),
        ],
        **kwargs,
    )

class FakeRpc:
    """Serves getTransaction from a dict keyed by signature."""

    def __init__(self):
        self.transactions = {}
        self.requests = []
        self.fail_with = None

    def add(self, signature, result):
        self.transactions[signature] = result

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.fail_with is not None:
            raise self.fail_with
        if body["method"] == "getTransaction":
            signature = body["params"][0]
            result = self.transactions.get(signature)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})
        if body["method"] == "getSignatureStatuses":
            signature = body["params"][0][0]
            status = {"confirmationStatus": "finalized", "err": None} if signature in self.transactions else None
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": [status]}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
