"""Verification against the auth service's published key."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from fastapi.testclient import TestClient

from progress_service.services import token_service
from tests.conftest import STUDENT_EMAIL


def _pem(private_key) -> str:
    return (
        private_key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


def _issued_by(private_key, *, sub: str = STUDENT_EMAIL) -> str:
    now = datetime.now(UTC)
    return jwt.encode(
        {
            "sub": sub,
            "iss": token_service.ISSUER,
            "aud": token_service.AUDIENCE,
            "iat": now,
            "exp": now + timedelta(minutes=5),
            "roles": ["student"],
        },
        private_key,
        algorithm="ES256",
    )


@pytest.fixture
def auth_service_key(monkeypatch: pytest.MonkeyPatch) -> ec.EllipticCurvePrivateKey:
    """Swap verification over to an externally held key pair."""
    key = ec.generate_private_key(ec.SECP256R1())
    monkeypatch.setattr(
        token_service, "_public_key", token_service.load_public_key(_pem(key))
    )
    return key


def test_externally_issued_token_verifies(auth_service_key) -> None:
    claims = token_service.decode_access_token(_issued_by(auth_service_key))
    assert claims["sub"] == STUDENT_EMAIL
    assert claims["roles"] == ["student"]


def test_dev_key_tokens_rejected_once_key_configured(auth_service_key) -> None:
    token = token_service.create_access_token(sub=STUDENT_EMAIL, roles=["student"])
    with pytest.raises(jwt.InvalidSignatureError):
        token_service.decode_access_token(token)


def test_api_accepts_externally_issued_token(
    auth_service_key, client: TestClient
) -> None:
    resp = client.get(
        "/progress/my-progress",
        headers={"Authorization": f"Bearer {_issued_by(auth_service_key)}"},
    )
    assert resp.status_code == 200
    assert resp.json() == []


def test_load_public_key_rejects_rsa() -> None:
    rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(ValueError, match="EC P-256"):
        token_service.load_public_key(_pem(rsa_key))


def test_load_public_key_rejects_other_curves() -> None:
    with pytest.raises(ValueError, match="EC P-256"):
        token_service.load_public_key(_pem(ec.generate_private_key(ec.SECP384R1())))


def test_minting_disabled_without_private_key(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(token_service, "_private_key", None)
    with pytest.raises(RuntimeError, match="No signing key"):
        token_service.create_access_token(sub=STUDENT_EMAIL)
