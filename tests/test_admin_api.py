import asyncio
import importlib.util
from datetime import timedelta
from pathlib import Path

import pytest

from app.core.config import settings
from app.core.database import session_manager
from app.core.security import hash_key, verify_api_key
from app.models.adminuser import AdminUser
from app.services.AssessmentStore import SqlAssessmentStore, assessment_store_scope
from app.utils.clock import utcnow


async def _add_admin(**overrides):
    fields = {"id": "admin-1", "email": "ops@ccpm360.com", "name": "运营", "role": "admin", "is_active": True}
    fields.update(overrides)
    async with session_manager.get_session() as session:
        session.add(AdminUser(**fields))


def test_verify_api_key(admin_headers):
    assert verify_api_key(admin_headers["X-API-Key"]) is True
    assert verify_api_key("wrong") is False
    assert verify_api_key(None) is False
    assert hash_key("abc") == hash_key("abc") != hash_key("abd")


async def test_admin_routes_reject_missing_key(client):
    response = await client.get("/api/v1/admin/users/admin-1")

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid or missing API key"}


async def test_get_admin_user(client, admin_headers):
    await _add_admin()

    response = await client.get("/api/v1/admin/users/admin-1", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "user": {"id": "admin-1", "email": "ops@ccpm360.com", "name": "运营", "role": "admin", "isActive": True}
    }


async def test_admin_user_retry_uses_fresh_session(client, admin_headers, monkeypatch):
    await _add_admin()
    sessions = []
    lookup = SqlAssessmentStore.get_admin_user

    async def hang_first_attempt(self, user_id):
        sessions.append(self.session)
        if len(sessions) == 1:
            await asyncio.sleep(10)
        return await lookup(self, user_id)

    monkeypatch.setattr(SqlAssessmentStore, "get_admin_user", hang_first_attempt)
    monkeypatch.setattr(settings, "BACKEND_TIMEOUT_SECONDS", 0.05)
    monkeypatch.setattr(settings, "BACKEND_RETRY_BASE_DELAY", 0)
    monkeypatch.setattr(settings, "BACKEND_RETRY_MAX_DELAY", 0)

    response = await client.get("/api/v1/admin/users/admin-1", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "ops@ccpm360.com"
    assert len(sessions) == 2
    assert sessions[0] is not sessions[1]


async def test_unknown_admin_user(client, admin_headers):
    response = await client.get("/api/v1/admin/users/nobody", headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"detail": "Admin user not found"}


async def test_revoke_download_token(client, make_record, admin_headers):
    record = await make_record()
    token = (await client.post(f"/api/v1/assessment/{record['id']}/download-token")).json()["token"]

    revoked = await client.post(f"/api/v1/admin/download-tokens/{token}/revoke", headers=admin_headers)
    download = await client.get(f"/api/v1/download/pdf/{token}")
    unknown = await client.post(f"/api/v1/admin/download-tokens/{'a' * 64}/revoke", headers=admin_headers)

    assert revoked.status_code == 200
    assert download.json() == {"detail": "invalid token"}
    assert unknown.status_code == 404


async def test_cleanup_expired_tokens(client, make_record, admin_headers):
    record = await make_record()
    async with assessment_store_scope() as store:
        for i, age in enumerate((timedelta(days=10), timedelta(days=9), timedelta(days=-1))):
            await store.insert_download_token(
                token=str(i) * 64,
                assessment_id=record["id"],
                participant_email="a@example.com",
                expires_at=utcnow() - age,
            )

    response = await client.post("/api/v1/admin/download-tokens/cleanup", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Expired download tokens deactivated", "deactivated": 2}


def _load_cleanup_script():
    path = Path(__file__).resolve().parent.parent / "scripts" / "cleanup_expired_tokens.py"
    spec = importlib.util.spec_from_file_location("cleanup_expired_tokens", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def test_cleanup_script_requires_database(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    script = _load_cleanup_script()

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        await script.run_cleanup()


async def test_cleanup_script_runs_against_configured_database(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "sqlite+aiosqlite://")
    script = _load_cleanup_script()

    assert await script.run_cleanup() == 0
    assert session_manager.is_configured is False
