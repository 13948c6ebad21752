import pytest
from fastapi import HTTPException

from sppbilling.core.security import (
    TokenData,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_refresh_token,
    verify_token,
)


def _token_data():
    return TokenData(
        user_id="11111111-1111-1111-1111-111111111111",
        username="kasir1",
        role="kasir1",
        name="Kasir Satu",
        institution="SMA Negeri 1 Jakarta",
        email="kasir1@sman1jkt.edu",
    )


def test_verify_refresh_token_accepts_refresh_tokens():
    token = create_refresh_token(user_id="11111111-1111-1111-1111-111111111111")
    assert verify_refresh_token(token) == "11111111-1111-1111-1111-111111111111"


def test_verify_refresh_token_rejects_access_tokens():
    access_token = create_access_token(_token_data())

    with pytest.raises(HTTPException):
        verify_refresh_token(access_token)


def test_verify_token_rejects_refresh_tokens():
    refresh_token = create_refresh_token(user_id="11111111-1111-1111-1111-111111111111")

    with pytest.raises(HTTPException) as exc:
        verify_token(refresh_token)
    assert exc.value.status_code == 401


def test_access_token_carries_operator_name_and_role():
    data = verify_token(create_access_token(_token_data()))
    assert data.name == "Kasir Satu"
    assert data.role == "kasir1"


def test_tampered_token_is_rejected():
    token = create_access_token(_token_data())
    with pytest.raises(HTTPException):
        verify_token(token[:-4] + "abcd")


def test_password_hash_is_salted_and_verifiable():
    first = hash_password("kasir123")
    second = hash_password("kasir123")

    assert first != second
    assert "kasir123" not in first
    assert verify_password("kasir123", first)
    assert verify_password("kasir123", second)
    assert not verify_password("kasir124", first)
