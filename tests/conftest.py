import asyncio
import os

# Must be set before campaign_tracker.core.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from campaign_tracker.core.database import Base, get_db
from campaign_tracker.main import app


@pytest.fixture
def client(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'campaigns.db'}", poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


@pytest.fixture
def break_flush(monkeypatch):
    """Make every AsyncSession.flush fail until monkeypatch.undo()."""
    async def flush(self, objects=None):
        raise OperationalError("flush", {}, Exception("disk I/O error"))

    return lambda: monkeypatch.setattr(AsyncSession, "flush", flush)


def invoice_payload(**overrides) -> dict:
    payload = {
        "company": "Acme Foods",
        "campaign_name": "Diwali Push",
        "date_from": "2024-10-01",
        "date_to": "2024-10-31",
        "customer_invoice_number": "CUST-001",
        "customer_amount_without_tax": "10000",
        "customer_received_amount_without_tax": "10000",
        "vendor_name": "PrintCo",
        "vendor_invoice_number": "VEN-001",
        "vendor_amount_without_tax": "7000",
        "vendor_paid_amount_without_tax": "7000",
    }
    payload.update(overrides)
    return payload
