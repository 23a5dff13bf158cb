"""
Test operator authentication
"""
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from debt_ledger.core.auth import Operator, create_access_token, get_current_operator, require_admin
from debt_ledger.core.config import settings


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_create_access_token_claims():
    token = create_access_token("operator1", role="admin")
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])

    assert payload["sub"] == "operator1"
    assert payload["role"] == "admin"
    assert payload["exp"] > payload["iat"]


@pytest.mark.asyncio
async def test_get_current_operator():
    operator = await get_current_operator(bearer(create_access_token("operator1")))

    assert operator.username == "operator1"
    assert operator.role == "operator"
    assert operator.is_admin is False


@pytest.mark.asyncio
async def test_expired_token_rejected():
    token = create_access_token("operator1", expires_delta=timedelta(minutes=-1))

    with pytest.raises(HTTPException) as exc_info:
        await get_current_operator(bearer(token))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_token_without_subject_rejected():
    token = jwt.encode({"role": "admin"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exc_info:
        await get_current_operator(bearer(token))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_tampered_token_rejected():
    token = jwt.encode({"sub": "operator1"}, "some-other-secret", algorithm=settings.JWT_ALGORITHM)

    with pytest.raises(HTTPException):
        await get_current_operator(bearer(token))


@pytest.mark.asyncio
async def test_require_admin():
    admin = Operator(username="admin1", role=settings.ADMIN_ROLE)
    assert await require_admin(admin) is admin

    with pytest.raises(HTTPException) as exc_info:
        await require_admin(Operator(username="operator1"))

    assert exc_info.value.status_code == 403
