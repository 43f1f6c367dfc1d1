import os
import shutil
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="scriptdesk-tests-"))

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"
os.environ["DATA_DIR"] = str(_TMP / "data")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
for _key in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "PDF_HEADER_LOGO", "PDF_FOOTER_LOGO"):
    os.environ.pop(_key, None)

import httpx  # noqa: E402
import pytest  # noqa: E402

from scriptdesk.db import AsyncSessionLocal, Base, create_all, engine  # noqa: E402
from scriptdesk.main import app  # noqa: E402
from scriptdesk.models import Contractor, ContractorStatus  # noqa: E402
from scriptdesk.routes_auth import hash_password  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"


@pytest.fixture
async def database():
    from scriptdesk import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_all()
    yield
    await engine.dispose()
    shutil.rmtree(os.environ["DATA_DIR"], ignore_errors=True)


@pytest.fixture
async def session(database):
    async with AsyncSessionLocal() as s:
        yield s


@pytest.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def admin_headers(client):
    resp = await client.post("/api/auth/login", json={"email": "admin@example.com", "password": "admin-pass"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


async def create_contractor(
    session,
    email: str = "reader@example.com",
    password: str = "reader-pass",
    status: ContractorStatus = ContractorStatus.approved,
    name: str = "Rita Reader",
) -> Contractor:
    contractor = Contractor(
        name=name,
        email=email,
        password_hash=hash_password(password),
        status=status.value,
        current_workload=0,
        total_scripts_reviewed=0,
    )
    session.add(contractor)
    await session.commit()
    await session.refresh(contractor)
    return contractor


async def contractor_headers(client, email: str = "reader@example.com", password: str = "reader-pass") -> dict:
    resp = await client.post("/api/auth/contractor/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


async def submit_script(client, tier_id: str = "free", filename: str = "draft.pdf", **fields) -> httpx.Response:
    data = {
        "title": "The Long Night",
        "author_name": "Alex Author",
        "author_email": "alex@example.com",
        "tier_id": tier_id,
        **fields,
    }
    return await client.post(
        "/api/scripts",
        data=data,
        files={"file": (filename, PDF_BYTES, "application/pdf")},
    )
