import os

# Settings are read at import time; configure before importing the app
os.environ["JWT_SECRET"] = "test-secret-key-not-for-production"
os.environ["STORE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from underground.auth.credentials import CredentialService  # noqa: E402
from underground.config import settings  # noqa: E402
from underground.db import collections  # noqa: E402
from underground.db.documents import to_timestamp, utcnow  # noqa: E402
from underground.db.memory_store import InMemoryDocumentStore  # noqa: E402
from underground.infrastructure.audit import AuditLogger  # noqa: E402
from underground.services.member_service import MemberService  # noqa: E402
from underground.services.referral_service import ReferralService  # noqa: E402
from underground.services.reservation_service import ReservationService  # noqa: E402
from underground.services.villa_service import VillaService  # noqa: E402


@pytest.fixture
def store():
    return InMemoryDocumentStore(max_attempts=10)


@pytest.fixture
def credentials():
    return CredentialService(settings.jwt_secret(), bcrypt_rounds=4)


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def referral_service(store, credentials, audit):
    return ReferralService(store, credentials, audit)


@pytest.fixture
def member_service(store, credentials, audit):
    return MemberService(store, credentials, audit)


@pytest.fixture
def reservation_service(store, audit):
    return ReservationService(store, audit)


@pytest.fixture
def villa_service(store, audit):
    return VillaService(store, audit)


@pytest.fixture
def make_user(store, credentials):
    """Insert an activated member directly and return its id."""

    async def _make(
        email: str = "member@example.com",
        password: str | None = "correct-horse",
        *,
        name: str = "Member",
        is_admin: bool = False,
        is_nda_accepted: bool = True,
        is_deleted: bool = False,
    ) -> str:
        data = {
            "name": name,
            "email": email,
            "is_claimed": password is not None,
            "is_admin": is_admin,
            "is_nda_accepted": is_nda_accepted,
            "is_deleted": is_deleted,
            "connection_interests": [],
            "connection_visibility": "all",
            "created_at": to_timestamp(utcnow()),
        }
        if password is not None:
            data["password_hash"] = await credentials.hash_password(password)
        return await store.add(collections.USERS, data)

    return _make


@pytest.fixture
def client(store):
    from underground.main import create_app

    app = create_app(store=store)
    with TestClient(app) as test_client:
        yield test_client
