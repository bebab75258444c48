"""User token decoding."""
from jose import jwt

from apps.backend import auth
from apps.backend.config import Settings


def _token(claims: dict, secret: str = "test-secret") -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_unverified_claims_without_public_key(monkeypatch):
    monkeypatch.setattr(auth, "get_settings", lambda: Settings(clerk_jwt_public_key=""))
    assert auth.user_id_from_token(_token({"sub": "user_1"}, secret="anything")) == "user_1"


def test_verified_signature(monkeypatch):
    monkeypatch.setattr(
        auth,
        "get_settings",
        lambda: Settings(clerk_jwt_public_key="test-secret", clerk_jwt_algorithm="HS256"),
    )
    assert auth.user_id_from_token(_token({"sub": "user_1"})) == "user_1"
    assert auth.user_id_from_token(_token({"sub": "user_1"}, secret="wrong")) is None


def test_missing_sub_and_garbage(monkeypatch):
    monkeypatch.setattr(auth, "get_settings", lambda: Settings(clerk_jwt_public_key=""))
    assert auth.user_id_from_token(_token({"email": "a@b.test"})) is None
    assert auth.user_id_from_token("garbage") is None
