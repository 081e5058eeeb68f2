"""Shared fixtures for API tests.

Tokens are signed with a throwaway RSA key and verified through a fake JWKS
client, so the Firebase auth middleware runs unchanged without network access.
"""

from __future__ import annotations

import time
from types import SimpleNamespace
from typing import Any, Callable

import jwt as pyjwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ovulink.config import Settings
from ovulink.main import create_app

TEST_PROJECT_ID = "ovulink-test"
TEST_USER_ID = "firebase-uid-alice"
OTHER_USER_ID = "firebase-uid-bob"


class FakeJWKSClient:
    """Stands in for ``jwt.PyJWKClient``; always returns the test public key."""

    def __init__(self, public_key: Any) -> None:
        self._public_key = public_key

    def get_signing_key_from_jwt(self, token: str) -> SimpleNamespace:
        return SimpleNamespace(key=self._public_key)


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        firebase_project_id=TEST_PROJECT_ID,
        rate_limit_per_minute=1000,
        environment="test",
    )


@pytest.fixture
def app(settings: Settings, rsa_private_key: rsa.RSAPrivateKey) -> FastAPI:
    return create_app(settings, jwks_client=FakeJWKSClient(rsa_private_key.public_key()))


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_token(rsa_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Build a Firebase-shaped ID token; keyword overrides replace claims."""

    def _make(user_id: str = TEST_USER_ID, **overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": f"https://securetoken.google.com/{TEST_PROJECT_ID}",
            "aud": TEST_PROJECT_ID,
            "sub": user_id,
            "iat": now,
            "exp": now + 3600,
            "email": f"{user_id}@example.com",
            "email_verified": True,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return pyjwt.encode(claims, rsa_private_key, algorithm="RS256", headers={"kid": "test"})

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def other_auth_headers(make_token: Callable[..., str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(OTHER_USER_ID)}"}
