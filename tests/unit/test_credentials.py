"""
Tests for password hashing and session tokens.
"""

from datetime import timedelta

import jwt
import pytest

from underground.auth.credentials import CredentialService, TokenVerificationError
from underground.models.domain.user_domain import Principal


@pytest.mark.asyncio
async def test_hash_and_verify_password(credentials):
    hashed = await credentials.hash_password("s3cret-password")

    assert hashed != "s3cret-password"
    assert await credentials.verify_password("s3cret-password", hashed) is True
    assert await credentials.verify_password("wrong-password", hashed) is False


@pytest.mark.asyncio
async def test_verify_password_with_malformed_hash(credentials):
    assert await credentials.verify_password("anything", "not-a-bcrypt-hash") is False


def test_token_round_trip(credentials):
    principal = Principal(id="user-1", is_admin=True, is_nda_accepted=False)

    token = credentials.issue_token(principal)

    assert credentials.verify_token(token) == principal


def test_expired_token_rejected(credentials):
    token = credentials.issue_token(Principal(id="user-1"), ttl=timedelta(seconds=-5))

    with pytest.raises(TokenVerificationError):
        credentials.verify_token(token)


def test_token_signed_with_other_secret_rejected(credentials):
    other = CredentialService("a-completely-different-secret", bcrypt_rounds=4)
    token = other.issue_token(Principal(id="user-1", is_admin=True))

    with pytest.raises(TokenVerificationError):
        credentials.verify_token(token)


def test_token_without_subject_rejected(credentials):
    token = jwt.encode(
        {"is_admin": True, "exp": 9999999999},
        "test-secret-key-not-for-production",
        algorithm="HS256",
    )

    with pytest.raises(TokenVerificationError):
        credentials.verify_token(token)


def test_garbage_token_rejected(credentials):
    with pytest.raises(TokenVerificationError):
        credentials.verify_token("not.a.jwt")
