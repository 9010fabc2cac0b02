"""JWT access token creation and validation (ES256).

Tokens are issued by the platform's identity service; this service only
verifies them, against the PEM public key in JWT_PUBLIC_KEY.

In dev and test, when JWT_PUBLIC_KEY is unset, an ephemeral EC key pair
is generated on import instead.  create_access_token mints tokens with
that pair so local runs and tests have something to authenticate with;
it is unavailable once a real verification key is configured.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from learnhub.core.config import SETTINGS, Settings

ALGORITHM = "ES256"
ISSUER = "learnhub"
AUDIENCE = "learnhub-api"
ACCESS_TOKEN_TTL_MIN = 15


def load_keys(
    settings: Settings,
) -> tuple[ec.EllipticCurvePrivateKey | None, ec.EllipticCurvePublicKey]:
    """Return (signing key or None, verification key) for these settings."""
    if settings.jwt_public_key:
        public_key = serialization.load_pem_public_key(
            settings.jwt_public_key.encode()
        )
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise ValueError("JWT_PUBLIC_KEY must be an EC P-256 key for ES256")
        return None, public_key
    if settings.is_prod:
        raise RuntimeError("JWT_PUBLIC_KEY is required when APP_ENV=prod")
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


_private_key, _public_key = load_keys(SETTINGS)


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    """Build and sign an access token with sub, iss, aud, exp, iat, jti, roles."""
    if _private_key is None:
        raise RuntimeError(
            "Token minting needs the ephemeral dev/test key; "
            "JWT_PUBLIC_KEY is configured"
        )
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256.  Raises jwt.ExpiredSignatureError or
    jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
