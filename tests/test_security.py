from datetime import timedelta

import pytest

from app.core.security import (
    TokenError,
    TokenExpired,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    read_signed_subject,
    read_unverified_expiry,
    verify_password,
)
from app.core.settings import settings


def test_password_hashing_and_verify():
    password = "S0meP@ss!WithLength"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert verify_password("S0meP@ss!", hashed) is False


def test_short_password_is_rejected():
    with pytest.raises(ValueError):
        get_password_hash("x" * (settings.password_min_length - 1))


def test_access_and_refresh_tokens_carry_type_and_identity():
    access = create_access_token("user-xyz", "xyz@example.com")
    refresh = create_refresh_token("user-xyz", "xyz@example.com")

    decoded_access = decode_token(access, expected_type="access")
    decoded_refresh = decode_token(refresh, expected_type="refresh")

    assert decoded_access["user_id"] == "user-xyz"
    assert decoded_access["email"] == "xyz@example.com"
    assert decoded_access["type"] == "access"
    assert decoded_refresh["type"] == "refresh"
    assert "jti" in decoded_refresh
    assert decoded_access["jti"] != decoded_refresh["jti"]


def test_tokens_are_signed_with_distinct_secrets():
    access = create_access_token("user-xyz", "xyz@example.com")
    refresh = create_refresh_token("user-xyz", "xyz@example.com")

    with pytest.raises(TokenError):
        decode_token(access, expected_type="refresh")
    with pytest.raises(TokenError):
        decode_token(refresh, expected_type="access")


def test_expired_token_raises_token_expired():
    token = create_access_token("user-xyz", "xyz@example.com", expires_delta=timedelta(seconds=-5))
    with pytest.raises(TokenExpired):
        decode_token(token)


def test_tampered_token_is_rejected():
    token = create_access_token("user-xyz", "xyz@example.com")
    other = create_access_token("user-abc", "abc@example.com")
    forged = token.rsplit(".", 1)[0] + "." + other.rsplit(".", 1)[1]
    with pytest.raises(TokenError):
        decode_token(forged)


def test_unverified_expiry_reads_exp_claim():
    token = create_access_token("user-xyz", "xyz@example.com", expires_delta=timedelta(minutes=3))
    claims = decode_token(token)
    assert read_unverified_expiry(token) == claims["exp"]
    assert read_unverified_expiry("not-a-jwt") is None


def test_signed_subject_survives_expiry_but_not_forgery():
    expired = create_access_token("user-xyz", "xyz@example.com", expires_delta=timedelta(seconds=-5))
    other = create_access_token("user-abc", "abc@example.com")
    forged = expired.rsplit(".", 1)[0] + "." + other.rsplit(".", 1)[1]

    assert read_signed_subject(expired) == "user-xyz"
    assert read_signed_subject(forged) is None
    assert read_signed_subject(create_refresh_token("user-xyz", "xyz@example.com")) is None
    assert read_signed_subject("not-a-jwt") is None
