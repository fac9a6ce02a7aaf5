from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from app.core.config import Settings
from app.core.db import Database
from app.modules.content.models import ContentListing, ContentType
from app.modules.payments import models as payment_models  # noqa: F401

from tests.helpers import CREATOR, SECRET, USDC_MINT, FakeRpc

@pytest.fixture
def fake_rpc():
    return FakeRpc()

@pytest.fixture
def settings(tmp_path):
    return Settings(
        SECRET_KEY=SECRET,
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'paywall.db'}",
        SOLANA_RPC_ENDPOINT="https://rpc.test",
        PAYMENT_TOKEN_MINT=USDC_MINT,
        STORAGE_RETRY_BASE_DELAY=0,
        EXPIRY_SWEEP_INTERVAL_SECONDS=0,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        FRONTEND_URL="http://frontend.test",
        _env_file=None,
    )

@pytest_asyncio.fixture
async def database(settings):
    database = Database(settings.async_database_url)
    await database.init()
    await database.create_all()
    yield database
    await database.close()

@pytest_asyncio.fixture
async def db(database):
    async with database.session() as session:
        yield session

@pytest_asyncio.fixture
async def make_listing(db):
    async def _make(
        price="1.00",
        recipient=CREATOR,
        content_type=ContentType.LINK,
        content_path="https://example.com/secret",
        expires_at=None,
        mint=USDC_MINT,
        **kwargs,
    ) -> ContentListing:
        listing = ContentListing(
            content_type=content_type,
            content_path=content_path,
            price_amount=Decimal(price),
            price_currency=mint,
            recipient_address=recipient,
            expires_at=expires_at,
            **kwargs,
        )
        db.add(listing)
        await db.commit()
        await db.refresh(listing)
        return listing
    return _make

@pytest.fixture
def past():
    return datetime.now(timezone.utc) - timedelta(hours=1)
