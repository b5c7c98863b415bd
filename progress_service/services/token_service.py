"""JWT access token validation (ES256).

Tokens are issued by the LMS auth layer; this service only verifies them,
against the PEM public key in JWT_PUBLIC_KEY. Without it (dev and tests
only; prod refuses to start) an ephemeral key pair is generated on import
and ``create_access_token`` mints tokens that the API accepts.

Claims consumed: ``sub`` (the user's email) and ``roles``
(student|teacher).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from progress_service.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "lms-auth"
AUDIENCE = "progress-service"
ACCESS_TOKEN_TTL_MIN = 15


def load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    """Parse the auth service's verification key; it must be P-256."""
    key = serialization.load_pem_public_key(pem.encode())
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("JWT_PUBLIC_KEY must be an EC P-256 public key")
    return key


_private_key: ec.EllipticCurvePrivateKey | None
if SETTINGS.jwt_public_key:
    _private_key = None
    _public_key = load_public_key(SETTINGS.jwt_public_key)
else:
    # Dev/test: ephemeral EC key pair generated on import.
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    if _private_key is None:
        raise RuntimeError(
            "No signing key: tokens come from the auth service when "
            "JWT_PUBLIC_KEY is set"
        )
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or [],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 so alg:none and alg-switching are rejected.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat"]},
    )
