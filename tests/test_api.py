from decimal import Decimal
from pathlib import Path
from uuid import UUID

import httpx
import pytest_asyncio

from app.main import create_app, shutdown, startup
from app.modules.content.models import ContentListing

from tests.helpers import CREATOR, PAYER, STRANGER, make_signature, usdc_payment

API = "/api/v1"

@pytest_asyncio.fixture
async def app(settings, fake_rpc):
    app = create_app(settings, ledger_transport=fake_rpc.transport)
    await startup(app)
    yield app
    await shutdown(app)

@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

async def create_content(client, price="1.00", **kwargs):
    body = {
        "content_type": "link",
        "content_path": "https://example.com/paid",
        "price": price,
        "creator_wallet": CREATOR,
    }
    body.update(kwargs)
    resp = await client.post(f"{API}/content", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()

async def verify(client, content_id, signature, **extra):
    body = {"contentId": content_id, "transactionSignature": signature}
    body.update(extra)
    return await client.post(f"{API}/payments/verify", json=body)

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "ok"
    assert resp.json()["verification_mode"] == "ledger"

async def test_end_to_end_purchase(client, fake_rpc):
    content = await create_content(client)
    content_id = content["id"]
    assert Decimal(content["price_amount"]) == Decimal("1.00")

    # No credential yet: 402 with the challenge
    resp = await client.get(f"{API}/content/{content_id}/download")
    assert resp.status_code == 402
    challenge = resp.json()["payment"]
    assert challenge["recipient"] == CREATOR
    assert Decimal(challenge["amount"]) == Decimal("1.00")
    assert challenge["content_id"] == content_id

    signature = make_signature(70)
    fake_rpc.add(signature, usdc_payment("1.00"))

    resp = await verify(client, content_id, signature)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["verified"] is True
    token = body["accessToken"]
    assert body["downloadUrl"] == f"http://frontend.test/{content_id}?payment={token}"
    assert body["details"]["match"] == "owner"
    assert body["details"]["signature"] == signature

    # Same signature again: still verified, still one payment
    resp = await verify(client, content_id, signature)
    assert resp.status_code == 200
    assert resp.json()["verified"] is True

    info = (await client.get(f"{API}/content/{content_id}/info")).json()
    assert info["payment_count"] == 1
    assert info["is_expired"] is False

    for kwargs in (
        {"headers": {"X-Payment-Proof": token}},
        {"headers": {"Authorization": f"Bearer {token}"}},
        {"params": {"payment": token}},
    ):
        resp = await client.get(f"{API}/content/{content_id}/download", **kwargs)
        assert resp.status_code == 200
        assert resp.json() == {"type": "link", "url": "https://example.com/paid"}

    status = (await client.get(f"{API}/payments/status/{content_id}", params={"signature": signature})).json()
    assert status["paid"] is True
    assert status["status"] == "completed"

    history = (await client.get(f"{API}/payments/history/{CREATOR}")).json()
    assert history["stats"]["total_payments"] == 1
    assert history["payments"][0]["payer_address"] == PAYER

async def test_initiate_returns_challenge(client):
    content = await create_content(client, price="3.25")

    resp = await client.post(f"{API}/payments/initiate", json={"content_id": content["id"]})

    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["amount"]) == Decimal("3.25")
    assert body["currency"] == "USDC"
    assert body["network"] == "solana"

async def test_rejected_payment_is_402(client, fake_rpc):
    content = await create_content(client, price="10.00")
    signature = make_signature(71)
    fake_rpc.add(signature, usdc_payment("9.00"))

    resp = await verify(client, content["id"], signature)

    assert resp.status_code == 402
    body = resp.json()
    assert body["verified"] is False
    assert body["error"] == "amount_mismatch"
    assert body["details"]["expected"] == "10.000000"

async def test_unknown_transaction_is_402(client):
    content = await create_content(client)
    resp = await verify(client, content["id"], make_signature(72))

    assert resp.status_code == 402
    assert resp.json()["error"] == "transaction_not_found"

async def test_ledger_outage_is_retryable_503(client, fake_rpc):
    content = await create_content(client)
    fake_rpc.fail_with = httpx.ConnectError("connection refused")

    resp = await verify(client, content["id"], make_signature(73))

    assert resp.status_code == 503
    assert resp.json()["verified"] is False
    assert resp.json()["retryable"] is True

async def test_malformed_input_is_400(client):
    content = await create_content(client)

    for args, extra in (
        ((content["id"], "definitely-not-base58-0OIl"), {}),
        (("nope", make_signature(74)), {}),
        ((content["id"], make_signature(74)), {"payerWallet": "bad"}),
    ):
        resp = await verify(client, *args, **extra)
        assert resp.status_code == 400
        assert resp.json()["verified"] is False
        assert resp.json()["error"] == "invalid_input"

async def test_missing_and_expired_content_keep_verify_shape(client, app, past):
    resp = await verify(client, "00000000-0000-0000-0000-000000000000", make_signature(79))
    assert resp.status_code == 404
    assert resp.json()["verified"] is False
    assert resp.json()["error"] == "content_not_found"

    content = await create_content(client)
    async with app.state.database.session() as session:
        listing = await session.get(ContentListing, UUID(content["id"]))
        listing.expires_at = past
        await session.commit()

    resp = await verify(client, content["id"], make_signature(79))
    assert resp.status_code == 410
    assert resp.json()["verified"] is False
    assert resp.json()["error"] == "content_expired"

async def test_success_response_uses_wire_names(client, fake_rpc):
    content = await create_content(client)
    signature = make_signature(80)
    fake_rpc.add(signature, usdc_payment("1.00"))

    body = (await verify(client, content["id"], signature)).json()

    assert {"verified", "accessToken", "downloadUrl", "details"} <= set(body)
    assert "access_token" not in body
    assert "download_url" not in body
    assert "error" not in body

async def test_bad_credentials_get_generic_403(client, app, fake_rpc):
    first = await create_content(client)
    second = await create_content(client)
    signature = make_signature(75)
    fake_rpc.add(signature, usdc_payment("1.00"))
    token = (await verify(client, first["id"], signature)).json()["accessToken"]

    expired = app.state.credentials.issue_for_payment(first["id"], signature, PAYER, ttl_seconds=-10)
    for proof in ("garbage", token[:-3] + "abc", expired):
        resp = await client.get(f"{API}/content/{first['id']}/download", headers={"X-Payment-Proof": proof})
        assert resp.status_code == 403
        assert resp.json() == {"error": "access_denied", "message": "Access denied"}

    # Valid credential, wrong content
    resp = await client.get(f"{API}/content/{second['id']}/download", headers={"X-Payment-Proof": token})
    assert resp.status_code == 403
    assert resp.json() == {"error": "access_denied", "message": "Access denied"}

async def test_text_and_file_delivery(client, app, settings):
    uploads = Path(settings.UPLOAD_DIR)
    uploads.mkdir(parents=True, exist_ok=True)
    (uploads / "notes.txt").write_text("the paid words", encoding="utf-8")
    (uploads / "track.bin").write_bytes(b"\x00\x01\x02")

    text = await create_content(client, content_type="text", content_path="notes.txt")
    file = await create_content(
        client,
        content_type="file",
        content_path="track.bin",
        original_filename="track.bin",
        mimetype="application/octet-stream",
    )
    missing = await create_content(client, content_type="file", content_path="gone.bin")
    credentials = app.state.credentials

    def proof(content_id):
        return {"X-Payment-Proof": credentials.issue_for_payment(content_id, make_signature(76), PAYER)}

    resp = await client.get(f"{API}/content/{text['id']}/download", headers=proof(text["id"]))
    assert resp.json() == {"type": "text", "content": "the paid words"}

    resp = await client.get(f"{API}/content/{file['id']}/download", headers=proof(file["id"]))
    assert resp.status_code == 200
    assert resp.content == b"\x00\x01\x02"

    resp = await client.get(f"{API}/content/{missing['id']}/download", headers=proof(missing["id"]))
    assert resp.status_code == 404

async def test_delete_requires_creator_and_stops_delivery(client, app):
    content = await create_content(client)
    token = app.state.credentials.issue_for_payment(content["id"], make_signature(77), PAYER)

    resp = await client.request("DELETE", f"{API}/content/{content['id']}", json={"creator_wallet": STRANGER})
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"

    resp = await client.request("DELETE", f"{API}/content/{content['id']}", json={"creator_wallet": CREATOR})
    assert resp.status_code == 200
    assert resp.json() == {"deleted": True, "id": content["id"]}

    resp = await client.get(f"{API}/content/{content['id']}/download", headers={"X-Payment-Proof": token})
    assert resp.status_code == 404
    assert resp.json()["error"] == "content_not_found"

async def test_create_rejects_out_of_range_price(client):
    resp = await client.post(f"{API}/content", json={
        "content_type": "link",
        "content_path": "https://example.com",
        "price": "250",
        "creator_wallet": CREATOR,
    })
    assert resp.status_code == 400
    assert resp.json()["details"] == {"field": "price"}

async def test_preview_and_unknown_content(client):
    content = await create_content(client)

    preview = (await client.get(f"{API}/content/{content['id']}/preview")).json()
    assert preview["preview_available"] is False

    resp = await client.get(f"{API}/content/00000000-0000-0000-0000-000000000000/info")
    assert resp.status_code == 404

async def test_simulated_mode_skips_ledger(settings, fake_rpc):
    simulated = settings.model_copy(update={"VERIFICATION_MODE": "simulated"})
    app = create_app(simulated, ledger_transport=fake_rpc.transport)
    await startup(app)
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            content = await create_content(client)
            resp = await verify(client, content["id"], "sim_checkout_1", payerWallet=PAYER)
            assert resp.status_code == 200
            assert resp.json()["details"]["match"] == "simulated"

            resp = await verify(client, content["id"], make_signature(78))
            assert resp.status_code == 400
    finally:
        await shutdown(app)

    assert fake_rpc.requests == []
