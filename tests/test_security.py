from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from jose import jwt

from conftest import TEST_SECRET, make_input
from onboarding.domain.errors import AuthError, NotFoundError
from onboarding.infrastructure.security import CredentialIssuer, PasswordHasher


def test_password_hash_roundtrip():
    hasher = PasswordHasher()
    hashed = hasher.hash("password123")
    assert hashed != "password123"
    assert hasher.verify("password123", hashed)
    assert not hasher.verify("wrong", hashed)


@pytest.mark.asyncio
async def test_issue_for_existing_student(register, issuer):
    student = await register.execute(make_input())
    token = await issuer.issue(student.id)

    claims = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
    assert claims["sub"] == student.id
    assert issuer.decode(token) == student.id


@pytest.mark.asyncio
async def test_token_lifetime_is_explicit(register, issuer):
    """Срок жизни токена — ровно TTL (1000 дней)"""
    student = await register.execute(make_input())
    claims = jwt.decode(await issuer.issue(student.id), TEST_SECRET, algorithms=["HS256"])

    lifetime = claims["exp"] - claims["iat"]
    assert lifetime == int(timedelta(days=1000).total_seconds())
    assert datetime.fromtimestamp(claims["exp"], timezone.utc) > datetime.now(timezone.utc) + timedelta(days=999)


@pytest.mark.asyncio
async def test_issue_for_missing_subject_does_not_sign(issuer):
    """Несуществующий студент: NotFoundError, подпись не вызывается"""
    with patch("onboarding.infrastructure.security.jwt.encode") as encode:
        with pytest.raises(NotFoundError) as exc:
            await issuer.issue("ghost")
    encode.assert_not_called()
    assert exc.value.message == "Student doesn't exist"


@pytest.mark.asyncio
async def test_decode_rejects_foreign_signature(register, students):
    student = await register.execute(make_input())
    other = CredentialIssuer(students, secret="another-secret")
    token = await other.issue(student.id)

    issuer = CredentialIssuer(students, secret=TEST_SECRET)
    with pytest.raises(AuthError):
        issuer.decode(token)


@pytest.mark.asyncio
async def test_decode_rejects_expired(register, students):
    student = await register.execute(make_input())
    expired = CredentialIssuer(students, secret=TEST_SECRET, ttl=timedelta(seconds=-1))
    token = await expired.issue(student.id)

    with pytest.raises(AuthError):
        expired.decode(token)


def test_decode_garbage(issuer):
    with pytest.raises(AuthError):
        issuer.decode("not-a-token")
