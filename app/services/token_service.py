"""Session cookie JWTs (ES256).

The catalogue does not authenticate users itself; the admin UI's login
flow sets a ``session`` cookie holding a JWT signed with the login
service's EC key.  The catalogue only verifies it, with the public key
from SESSION_PUBLIC_KEY, to record who performed an import
(``imported_by``).  A missing or invalid cookie is not an error: the
actor is then "unknown".
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from app.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "credential-catalogue"
SESSION_AUDIENCE = "credential-catalogue-session"
SESSION_TTL_MIN = 30


def load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    """Parse a PEM-encoded P-256 public key.

    Raises ValueError for malformed PEM or a key of another type.
    """
    key = load_pem_public_key(pem.encode())
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("SESSION_PUBLIC_KEY must be a P-256 (ES256) public key")
    return key


# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# Production: verify with the login service's public key (SESSION_PUBLIC_KEY).
# Dev/test without one: an ephemeral EC key pair generated on import, so
# create_session_token() can mint cookies the catalogue accepts.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = (
    load_public_key(SETTINGS.session_public_key)
    if SETTINGS.session_public_key
    else _private_key.public_key()
)


def create_session_token(*, sub: str) -> str:
    """Build and sign a session JWT with the ephemeral dev/test key."""
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": SESSION_AUDIENCE,
        "exp": now + timedelta(minutes=SESSION_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Verify a session JWT. Pins algorithm and audience.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=SESSION_AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
