"""Unit tests for principal resolution from bearer tokens."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from six_cities.core.auth import decode_principal_id, extract_bearer_token, resolve_principal_id
from six_cities.core.config import AuthSettings

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def _auth_settings(secret: str | None = SECRET) -> AuthSettings:
    return AuthSettings(secret=secret, algorithm="HS256")


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def _request(headers: dict | None = None, principal_id: str | None = None) -> SimpleNamespace:
    state = SimpleNamespace()
    if principal_id is not None:
        state.principal_id = principal_id
    return SimpleNamespace(headers=headers or {}, state=state)


class TestExtractBearerToken:
    def test_extracts_token(self) -> None:
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self) -> None:
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Basic dXNlcjpwdw==", "Bearer ", "Bearer"])
    def test_rejects_other_headers(self, header) -> None:
        assert extract_bearer_token(header) is None


class TestDecodePrincipalId:
    def test_reads_id_claim(self) -> None:
        token = _token({"id": "user-42", "email": "a@b.c"})

        assert decode_principal_id(token, _auth_settings()) == "user-42"

    def test_falls_back_to_sub_claim(self) -> None:
        token = _token({"sub": "user-7"})

        assert decode_principal_id(token, _auth_settings()) == "user-7"

    def test_rejects_wrong_signature(self) -> None:
        token = _token({"id": "user-42"}, secret="another-secret-that-is-long-enough-for-hs256")

        assert decode_principal_id(token, _auth_settings()) is None

    def test_rejects_expired_token(self) -> None:
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        token = _token({"id": "user-42", "exp": expired})

        assert decode_principal_id(token, _auth_settings()) is None

    def test_rejects_garbage(self) -> None:
        assert decode_principal_id("not-a-jwt", _auth_settings()) is None

    def test_without_secret_nobody_is_authenticated(self) -> None:
        token = _token({"id": "user-42"})

        assert decode_principal_id(token, _auth_settings(secret=None)) is None

    def test_token_without_principal_claim(self) -> None:
        token = _token({"role": "admin"})

        assert decode_principal_id(token, _auth_settings()) is None


class TestResolvePrincipalId:
    def test_prefers_upstream_principal(self) -> None:
        request = _request(
            headers={"Authorization": f"Bearer {_token({'id': 'from-token'})}"},
            principal_id="from-state",
        )

        assert resolve_principal_id(request, _auth_settings()) == "from-state"

    def test_reads_bearer_token(self) -> None:
        request = _request(headers={"Authorization": f"Bearer {_token({'id': 'from-token'})}"})

        assert resolve_principal_id(request, _auth_settings()) == "from-token"

    def test_anonymous_request(self) -> None:
        assert resolve_principal_id(_request(), _auth_settings()) is None
