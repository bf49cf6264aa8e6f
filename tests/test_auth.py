"""Tests for bearer token parsing and access token claims."""

from __future__ import annotations

import jwt
import pytest
from fastapi import HTTPException

from auth import dependencies, security


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret-with-enough-length-123")
    monkeypatch.setenv("JWT_ALG", "HS256")


class TestBearerHeader:
    @pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer   "])
    def test_rejects_bad_headers(self, header):
        with pytest.raises(HTTPException) as exc_info:
            dependencies.extract_bearer_token(header)
        assert exc_info.value.status_code == 401

    def test_extracts_token(self):
        assert dependencies.extract_bearer_token("bearer abc.def") == "abc.def"


class TestAccessToken:
    def test_round_trip_claims(self):
        token = security.build_access_token(user_id=5, email="a@b.c")
        payload = security.decode_access_token(token)

        assert security.user_from_claims(payload) == {"id": 5, "email": "a@b.c"}

    def test_refresh_type_is_rejected(self):
        token = jwt.encode({"sub": "5", "type": "refresh"}, security.jwt_secret(), algorithm="HS256")

        with pytest.raises(security.AuthSecurityError, match="not an access token"):
            security.decode_access_token(token)

    def test_wrong_secret_is_rejected(self):
        token = jwt.encode({"sub": "5", "type": "access"}, "another-secret-with-enough-length", algorithm="HS256")

        with pytest.raises(security.AuthSecurityError, match="Invalid access token"):
            security.decode_access_token(token)

    def test_token_without_type_claim_is_rejected(self):
        token = jwt.encode({"sub": "5", "email": "a@b.c"}, security.jwt_secret(), algorithm="HS256")

        with pytest.raises(security.AuthSecurityError, match="not an access token"):
            security.decode_access_token(token)

    @pytest.mark.asyncio
    async def test_string_subject_token_is_401(self):
        token = jwt.encode(
            {"sub": "c0ffee-user", "type": "access"}, security.jwt_secret(), algorithm="HS256"
        )

        with pytest.raises(HTTPException) as exc_info:
            await dependencies.get_current_user(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid access token subject."

    def test_non_numeric_subject_is_rejected(self):
        with pytest.raises(security.AuthSecurityError):
            security.user_from_claims({"sub": "abc", "type": "access"})

    @pytest.mark.asyncio
    async def test_get_current_user_maps_errors_to_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await dependencies.get_current_user("garbage")
        assert exc_info.value.status_code == 401
