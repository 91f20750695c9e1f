"""Tests for the /auth endpoints with the local provider."""

from urllib.parse import parse_qs, urlparse

from conftest import unique_email


def signup_payload(email, password="secret123", confirm=None, name="Kasun Silva"):
    return {
        "name": name,
        "email": email,
        "password": password,
        "confirm_password": confirm if confirm is not None else password,
    }


class TestSignup:
    def test_signup_creates_account_and_profile(self, client):
        email = unique_email()
        response = client.post("/auth/signup", json=signup_payload(email))
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["message"] == "Welcome, Kasun Silva! Your account has been created."
        assert data["profile"]["id"] == data["user_id"]
        assert data["profile"]["name"] == "Kasun Silva"
        assert data["profile"]["email"] == email
        assert data["profile"]["university_name"] == ""

    def test_passwords_must_match(self, client):
        response = client.post("/auth/signup", json=signup_payload(unique_email(), confirm="different1"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Passwords do not match."

    def test_password_minimum_length(self, client):
        response = client.post("/auth/signup", json=signup_payload(unique_email(), password="abc"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Password must be at least 6 characters long."

    def test_blank_name_rejected(self, client):
        response = client.post("/auth/signup", json=signup_payload(unique_email(), name="   "))
        assert response.status_code == 400
        assert response.json()["detail"] == "Please fill in all fields."

    def test_duplicate_email(self, client):
        email = unique_email()
        assert client.post("/auth/signup", json=signup_payload(email)).status_code == 200

        response = client.post("/auth/signup", json=signup_payload(email.upper()))
        assert response.status_code == 409
        assert response.json()["detail"] == "An account with this email already exists."

    def test_invalid_email_is_rejected(self, client):
        response = client.post("/auth/signup", json=signup_payload("not-an-email"))
        assert response.status_code == 422


class TestLogin:
    def test_login_returns_token_and_profile(self, client, register):
        email = unique_email()
        register(name="Amaya", email=email)

        response = client.post("/auth/login", json={"email": email, "password": "secret123"})
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Welcome back, Amaya!"
        assert data["profile"]["email"] == email

    def test_wrong_password(self, client, register):
        email = unique_email()
        register(email=email)

        response = client.post("/auth/login", json={"email": email, "password": "wrong-password"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect password."

    def test_unknown_email(self, client):
        response = client.post("/auth/login", json={"email": unique_email(), "password": "secret123"})
        assert response.status_code == 401
        assert response.json()["detail"] == "No account found with this email."


class TestSession:
    def test_me_returns_identity_and_profile(self, client, register):
        headers, body = register(name="Dilani")
        response = client.get("/auth/me", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == body["user_id"]
        assert data["provider"] == "local"
        assert data["profile"]["name"] == "Dilani"

    def test_me_requires_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code in (401, 403)

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_logout(self, client, auth_headers):
        response = client.post("/auth/logout", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "You have been successfully logged out."


class TestPasswordReset:
    def _reset_token(self, reset_links, email):
        sent_to, link = reset_links[-1]
        assert sent_to == email
        return parse_qs(urlparse(link).query)["token"][0]

    def test_full_reset_flow(self, client, register, reset_links):
        email = unique_email()
        register(email=email)

        response = client.post("/auth/password-reset", json={"email": email})
        assert response.status_code == 200
        assert response.json()["message"] == "Check your email for password reset instructions."

        token = self._reset_token(reset_links, email)
        response = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "brand-new-pass"})
        assert response.status_code == 200

        old = client.post("/auth/login", json={"email": email, "password": "secret123"})
        assert old.status_code == 401
        new = client.post("/auth/login", json={"email": email, "password": "brand-new-pass"})
        assert new.status_code == 200

    def test_reset_token_is_single_use(self, client, register, reset_links):
        email = unique_email()
        register(email=email)
        client.post("/auth/password-reset", json={"email": email})
        token = self._reset_token(reset_links, email)

        first = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "another-pass"})
        assert first.status_code == 200

        second = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "third-pass"})
        assert second.status_code == 400
        assert second.json()["detail"] == "The password reset link is invalid or has already been used."

    def test_reset_for_unknown_email(self, client, reset_links):
        response = client.post("/auth/password-reset", json={"email": unique_email()})
        assert response.status_code == 404
        assert response.json()["detail"] == "No account found with this email address."
        assert reset_links == []

    def test_access_token_cannot_reset_password(self, client, register):
        _, body = register()
        response = client.post(
            "/auth/password-reset/confirm",
            json={"token": body["access_token"], "new_password": "whatever1"},
        )
        assert response.status_code == 400

    def test_new_password_minimum_length(self, client):
        response = client.post("/auth/password-reset/confirm", json={"token": "x", "new_password": "123"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Password must be at least 6 characters long."
