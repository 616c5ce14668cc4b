from datetime import datetime, timedelta, timezone

from jose import jwt

from patentflow.core.config import settings
from patentflow.core.security import (
    create_session_token,
    get_password_hash,
    verify_password,
    verify_session_token,
)
from patentflow.models.user import Role


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_verify_password_rejects_non_bcrypt_values():
    assert not verify_password("s3cret-pass", "plain-text")
    assert not verify_password("s3cret-pass", None)
    assert not verify_password("", get_password_hash("x" * 8))


def test_session_token_carries_identity():
    token = create_session_token("u-1", "pat@example.com", "Pat", [Role.PROCESSOR, Role.QA])
    user = verify_session_token(token)
    assert user.id == "u-1"
    assert user.email == "pat@example.com"
    assert user.roles == [Role.PROCESSOR, Role.QA]
    assert user.highest_role == Role.QA


def test_session_token_claims_include_iat_and_exp():
    issued = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    token = create_session_token("u-1", "a@example.com", "A", ["Admin"], now=issued)
    claims = jwt.get_unverified_claims(token)
    assert claims["iat"] == int(issued.timestamp())
    assert claims["exp"] == int((issued + timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)).timestamp())


def test_expired_session_is_rejected():
    issued = datetime.now(timezone.utc) - timedelta(minutes=settings.SESSION_EXPIRE_MINUTES + 1)
    token = create_session_token("u-1", "a@example.com", "A", ["Admin"], now=issued)
    assert verify_session_token(token) is None


def test_tampered_session_is_rejected():
    token = create_session_token("u-1", "a@example.com", "A", ["Processor"])
    forged = jwt.encode(
        {**jwt.get_unverified_claims(token), "roles": ["Admin"]},
        "not-the-secret",
        algorithm=settings.ALGORITHM,
    )
    assert verify_session_token(forged) is None


def test_session_without_roles_is_rejected():
    token = create_session_token("u-1", "a@example.com", "A", [])
    assert verify_session_token(token) is None


def test_missing_token_is_rejected():
    assert verify_session_token(None) is None
    assert verify_session_token("") is None
