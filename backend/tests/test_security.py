"""Password hashing, token handling and role guards."""
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from jose import JWTError, jwt

from app.core.config import settings
from app.core.security import create_access_token, decode_token, hash_password, verify_password
from app.db.session import get_session
from app.main import app


def test_password_hash_roundtrip():
    hashed = hash_password("changeme123")

    assert hashed != "changeme123"
    assert verify_password("changeme123", hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_carries_role_and_company():
    company_id = str(uuid.uuid4())
    payload = decode_token(create_access_token(subject="u-1", role="MANAGER", company_id=company_id))

    assert payload["sub"] == "u-1"
    assert payload["role"] == "MANAGER"
    assert payload["company_id"] == company_id
    assert payload["type"] == "access"


def test_token_signed_with_other_secret_rejected():
    forged = jwt.encode(
        {"sub": "u-1", "role": "ADMIN", "type": "access"}, "not-our-secret", algorithm=settings.JWT_ALGORITHM,
    )

    with pytest.raises(JWTError):
        decode_token(forged)


@pytest.mark.asyncio
async def test_expired_token_returns_401():
    expired = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "role": "ADMIN",
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    def override_get_session():
        yield MagicMock()

    app.dependency_overrides[get_session] = override_get_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {expired}"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_non_access_token_returns_401():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    def override_get_session():
        yield MagicMock()

    app.dependency_overrides[get_session] = override_get_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
