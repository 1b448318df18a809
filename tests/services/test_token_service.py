from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.api.dependencies import get_actor
from app.services import token_service
from app.services.record_builder import ANONYMOUS_ACTOR


def _pem(key: ec.EllipticCurvePrivateKey) -> str:
    return (
        key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


def _login_cookie(key: ec.EllipticCurvePrivateKey, sub: str) -> str:
    """A session JWT as the admin UI's login service would sign it."""
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": token_service.ISSUER,
        "aud": token_service.SESSION_AUDIENCE,
        "exp": now + timedelta(minutes=5),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, key, algorithm=token_service.ALGORITHM)


@pytest.fixture
def login_key(monkeypatch: pytest.MonkeyPatch) -> ec.EllipticCurvePrivateKey:
    """Verify cookies with the login service's configured public key."""
    key = ec.generate_private_key(ec.SECP256R1())
    monkeypatch.setattr(
        token_service, "_public_key", token_service.load_public_key(_pem(key))
    )
    return key


def test_load_public_key_accepts_p256_pem() -> None:
    key = ec.generate_private_key(ec.SECP256R1())
    loaded = token_service.load_public_key(_pem(key))
    assert loaded.public_numbers() == key.public_key().public_numbers()


def test_load_public_key_rejects_other_curves() -> None:
    with pytest.raises(ValueError, match="P-256"):
        token_service.load_public_key(_pem(ec.generate_private_key(ec.SECP384R1())))


def test_load_public_key_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        token_service.load_public_key("not a pem")


def test_cookie_from_login_service_names_the_actor(
    login_key: ec.EllipticCurvePrivateKey,
) -> None:
    assert get_actor(session=_login_cookie(login_key, "alice@example.com")) == (
        "alice@example.com"
    )


def test_cookie_signed_with_another_key_is_anonymous(
    login_key: ec.EllipticCurvePrivateKey,
) -> None:
    other = ec.generate_private_key(ec.SECP256R1())
    assert get_actor(session=_login_cookie(other, "mallory")) == ANONYMOUS_ACTOR
    assert get_actor(session=token_service.create_session_token(sub="dev")) == (
        ANONYMOUS_ACTOR
    )


def test_missing_cookie_is_anonymous() -> None:
    assert get_actor(session=None) == ANONYMOUS_ACTOR


def test_dev_cookie_round_trip_without_configured_key() -> None:
    token = token_service.create_session_token(sub="bob")
    assert token_service.decode_session_token(token)["sub"] == "bob"
