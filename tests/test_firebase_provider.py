"""Tests for the Firebase auth adapter with faked REST and Admin SDK calls."""

import asyncio

import pytest
import requests

from mygpa.core import providers
from mygpa.core.errors import AuthProviderError
from mygpa.core.providers import FirebaseAuthProvider


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


def rest_error(message, status_code=400):
    return FakeResponse(status_code, {"error": {"code": status_code, "message": message}})


@pytest.fixture
def calls():
    return []


@pytest.fixture
def fake_post(monkeypatch, calls):
    """Route Identity Toolkit requests to canned responses keyed by endpoint."""
    responses = {}

    def _post(url, params=None, json=None, timeout=None):
        endpoint = url.rsplit(":", 1)[1]
        calls.append((endpoint, params, json))
        return responses[endpoint]

    monkeypatch.setattr(providers.requests, "post", _post)
    return responses


@pytest.fixture
def provider():
    return FirebaseAuthProvider(api_key="test-key")


def run(coro):
    return asyncio.run(coro)


class TestSignIn:
    def test_success(self, provider, fake_post, calls):
        fake_post["signInWithPassword"] = FakeResponse(200, {
            "localId": "uid-1",
            "email": "a@example.com",
            "displayName": "Ayesha",
            "idToken": "id-token",
            "refreshToken": "refresh-token",
            "expiresIn": "3600",
        })

        session = run(provider.sign_in(None, "a@example.com", "pw123456"))

        assert session.identity.uid == "uid-1"
        assert session.identity.display_name == "Ayesha"
        assert session.access_token == "id-token"
        assert session.refresh_token == "refresh-token"
        assert session.expires_in == 3600
        endpoint, params, payload = calls[0]
        assert params == {"key": "test-key"}
        assert payload["returnSecureToken"] is True

    @pytest.mark.parametrize(
        "message, code",
        [
            ("EMAIL_NOT_FOUND", "auth/user-not-found"),
            ("INVALID_PASSWORD", "auth/wrong-password"),
            ("INVALID_LOGIN_CREDENTIALS", "auth/invalid-credential"),
            ("USER_DISABLED", "auth/user-disabled"),
            ("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled", "auth/too-many-requests"),
            ("SOMETHING_NEW", "auth/internal-error"),
        ],
    )
    def test_error_codes(self, provider, fake_post, message, code):
        fake_post["signInWithPassword"] = rest_error(message)

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.sign_in(None, "a@example.com", "pw"))
        assert excinfo.value.code == code
        assert excinfo.value.message == message

    def test_network_failure(self, provider, monkeypatch):
        def _post(*args, **kwargs):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(providers.requests, "post", _post)

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.sign_in(None, "a@example.com", "pw"))
        assert excinfo.value.code == "auth/network-request-failed"


class TestSignUp:
    def test_sets_display_name(self, provider, fake_post, monkeypatch):
        fake_post["signUp"] = FakeResponse(200, {
            "localId": "uid-2",
            "email": "b@example.com",
            "idToken": "id-token",
            "refreshToken": "r",
            "expiresIn": "3600",
        })
        updates = []
        monkeypatch.setattr(
            providers.firebase_auth, "update_user",
            lambda uid, app=None, **kwargs: updates.append((uid, kwargs)),
        )

        session = run(provider.sign_up(None, "Bimal", "b@example.com", "pw123456"))

        assert updates == [("uid-2", {"display_name": "Bimal"})]
        assert session.identity.display_name == "Bimal"

    def test_weak_password(self, provider, fake_post):
        fake_post["signUp"] = rest_error("WEAK_PASSWORD : Password should be at least 6 characters")

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.sign_up(None, "Bimal", "b@example.com", "123"))
        assert excinfo.value.code == "auth/weak-password"

    def test_email_exists(self, provider, fake_post):
        fake_post["signUp"] = rest_error("EMAIL_EXISTS")

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.sign_up(None, "Bimal", "b@example.com", "pw123456"))
        assert excinfo.value.code == "auth/email-already-in-use"


class TestTokensAndReset:
    def test_verify_token(self, provider, monkeypatch):
        def _verify(token, app=None, check_revoked=False):
            assert check_revoked is True
            return {"uid": "uid-3", "email": "c@example.com", "name": "Chamari", "picture": "https://img/c.png"}

        monkeypatch.setattr(providers.firebase_auth, "verify_id_token", _verify)

        identity = run(provider.verify_token(None, "id-token"))
        assert identity.uid == "uid-3"
        assert identity.photo_url == "https://img/c.png"

    def test_verify_rejects_invalid_token(self, provider, monkeypatch):
        def _verify(token, app=None, check_revoked=False):
            raise providers.firebase_auth.InvalidIdTokenError("bad token")

        monkeypatch.setattr(providers.firebase_auth, "verify_id_token", _verify)

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.verify_token(None, "id-token"))
        assert excinfo.value.code == "auth/invalid-id-token"

    def test_sign_out_revokes_refresh_tokens(self, provider, monkeypatch):
        revoked = []
        monkeypatch.setattr(
            providers.firebase_auth, "revoke_refresh_tokens",
            lambda uid, app=None: revoked.append(uid),
        )

        run(provider.sign_out(None, "uid-4"))
        assert revoked == ["uid-4"]

    def test_send_password_reset(self, provider, fake_post, calls):
        fake_post["sendOobCode"] = FakeResponse(200, {"email": "d@example.com"})

        run(provider.send_password_reset(None, "d@example.com"))

        assert calls[0][2] == {"requestType": "PASSWORD_RESET", "email": "d@example.com"}

    def test_confirm_reset_with_expired_code(self, provider, fake_post):
        fake_post["resetPassword"] = rest_error("EXPIRED_OOB_CODE")

        with pytest.raises(AuthProviderError) as excinfo:
            run(provider.confirm_password_reset(None, "oob", "new-password"))
        assert excinfo.value.code == "auth/expired-action-code"


def test_api_key_required():
    with pytest.raises(ValueError):
        FirebaseAuthProvider(api_key="")
