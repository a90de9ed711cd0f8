import os
from pathlib import Path

import httpx
import pytest
import pytest_asyncio


os.environ.setdefault("DATABASE_URL", "sqlite:///./data/test.db")
os.environ.setdefault("BASESCAN_API_URL", "https://basescan.test/api")
os.environ.setdefault("ONEMOLT_BASE_URL", "https://onemolt.test/api/v1")
os.environ.setdefault("ORACLE_TIMEOUT_SECONDS", "2")

from agent_directory.db import SessionLocal, engine, init_db
from agent_directory.main import app
from agent_directory.models import Base
from agent_directory.services.oracles import (
    IdentityOracle,
    PaymentOracle,
    get_identity_oracle,
    get_payment_oracle,
)

GOOD_TX = "0x" + "a" * 64
FAILED_TX = "0x" + "b" * 64
UNKNOWN_TX = "0x" + "c" * 64
UNAVAILABLE_TX = "0x" + "d" * 64

VERIFIED_KEY = "pk-verified"
UNREACHABLE_KEY = "pk-unreachable"


class BasescanStub:
    """Fake Basescan API that records every request it serves."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        tx_hash = params.get("txhash")

        if tx_hash == UNAVAILABLE_TX:
            raise httpx.ConnectError("connection refused", request=request)

        if params.get("action") == "gettxreceiptstatus":
            receipt_status = {GOOD_TX: "1", FAILED_TX: "0"}.get(tx_hash)
            if receipt_status is None:
                return httpx.Response(200, json={"status": "0", "message": "NOTOK", "result": "Not found"})
            return httpx.Response(200, json={"status": "1", "message": "OK", "result": {"status": receipt_status}})

        return httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "result": {"from": "0xpayer", "to": "0xpayee", "blockNumber": "0x1b4"},
            },
        )


def onemolt_handler(request: httpx.Request) -> httpx.Response:
    public_key = request.url.path.rsplit("/", 1)[-1]
    if public_key == UNREACHABLE_KEY:
        raise httpx.ConnectTimeout("timed out", request=request)
    if public_key == VERIFIED_KEY:
        return httpx.Response(200, json={"verified": True, "verification_level": "orb"})
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture(autouse=True, scope="session")
def _ensure_data_dir():
    Path("./data").mkdir(parents=True, exist_ok=True)
    test_db = Path("./data/test.db")
    if test_db.exists():
        test_db.unlink()


@pytest.fixture
def basescan():
    return BasescanStub()


@pytest.fixture
def payment_oracle(basescan):
    return PaymentOracle(transport=httpx.MockTransport(basescan))


@pytest.fixture
def identity_oracle():
    return IdentityOracle(transport=httpx.MockTransport(onemolt_handler))


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture
async def async_client(db, payment_oracle, identity_oracle):
    app.dependency_overrides[get_payment_oracle] = lambda: payment_oracle
    app.dependency_overrides[get_identity_oracle] = lambda: identity_oracle
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
