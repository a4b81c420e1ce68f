"""Tests for the account endpoints."""


class TestSignupRoute:
    def test_signup_creates_account(self, client):
        response = client.post(
            "/api/accounts/signup",
            json={
                "email": "Ana@Example.com",
                "password": "secret1",
                "role": "dependent",
                "profile": {"full_name": "Ana", "age": 71},
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["claim_outcome"] == "claimed"
        assert data["account"]["normalized_email"] == "ana@example.com"
        assert data["account"]["profile"]["age"] == 71
        assert data["access_token"]

    def test_duplicate_email_conflict(self, client, signup):
        """A second signup for the same address is a 409."""
        signup("ana@example.com")

        response = client.post(
            "/api/accounts/signup",
            json={"email": "ANA@example.com", "password": "secret1", "role": "manager"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "EMAIL_ALREADY_REGISTERED"

    def test_invalid_email_rejected(self, client):
        response = client.post(
            "/api/accounts/signup",
            json={"email": "not-an-email", "password": "secret1", "role": "dependent"},
        )
        assert response.status_code == 422

    def test_weak_password(self, client):
        response = client.post(
            "/api/accounts/signup",
            json={"email": "ana@example.com", "password": "123", "role": "dependent"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "WEAK_PASSWORD"


class TestSignInRoute:
    def test_sign_in(self, client, signup):
        account_id, _ = signup("doc@example.com", "manager")

        response = client.post(
            "/api/accounts/signin",
            json={"email": "doc@example.com", "password": "secret1", "expected_role": "manager"},
        )

        assert response.status_code == 200
        assert response.json()["account"]["id"] == account_id

    def test_wrong_portal(self, client, signup):
        signup("ana@example.com", "dependent")

        response = client.post(
            "/api/accounts/signin",
            json={"email": "ana@example.com", "password": "secret1", "expected_role": "manager"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "ACCOUNT_ROLE_MISMATCH"

    def test_wrong_password(self, client, signup):
        signup("ana@example.com")
        response = client.post(
            "/api/accounts/signin", json={"email": "ana@example.com", "password": "nope-nope"}
        )
        assert response.status_code == 401


class TestFederatedRoutes:
    def test_begin_then_complete(self, client, gateway):
        """A new federated identity completes signup with its own bearer token."""
        account_id = gateway.register_federated_identity("google", "id-tok", "bo@example.com", "Bo")

        begun = client.post("/api/accounts/federated/begin", json={"id_token": "id-tok"})
        assert begun.status_code == 200
        pending = begun.json()
        assert pending["status"] == "pending_completion"
        assert pending["account_id"] == account_id

        completed = client.post(
            "/api/accounts/federated/complete",
            headers={"Authorization": f"Bearer {pending['access_token']}"},
            json={
                "claimed_email": "bo@example.com",
                "role": "manager",
                "profile": {"full_name": "Bo"},
                "refresh_token": pending["refresh_token"],
            },
        )
        assert completed.status_code == 201
        assert completed.json()["account"]["id"] == account_id
        assert completed.json()["account"]["status"] == "active"

        again = client.post("/api/accounts/federated/begin", json={"id_token": "id-tok"})
        assert again.json()["status"] == "signed_in"

    def test_complete_with_other_email(self, client, gateway):
        gateway.register_federated_identity("google", "id-tok", "bo@example.com")
        pending = client.post("/api/accounts/federated/begin", json={"id_token": "id-tok"}).json()

        response = client.post(
            "/api/accounts/federated/complete",
            headers={"Authorization": f"Bearer {pending['access_token']}"},
            json={"claimed_email": "eve@example.com", "role": "dependent"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "IDENTITY_MISMATCH"

    def test_complete_without_provider_email(self, client, gateway):
        """An identity the provider knows no email for cannot claim one."""
        gateway.register_federated_identity("google", "id-tok", None)
        pending = client.post("/api/accounts/federated/begin", json={"id_token": "id-tok"}).json()

        response = client.post(
            "/api/accounts/federated/complete",
            headers={"Authorization": f"Bearer {pending['access_token']}"},
            json={"claimed_email": "victim@example.com", "role": "dependent"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "IDENTITY_MISMATCH"

    def test_begin_through_other_portal(self, client, gateway):
        account_id = gateway.register_federated_identity("google", "id-tok", "bo@example.com")
        pending = client.post("/api/accounts/federated/begin", json={"id_token": "id-tok"}).json()
        client.post(
            "/api/accounts/federated/complete",
            headers={"Authorization": f"Bearer {pending['access_token']}"},
            json={"claimed_email": "bo@example.com", "role": "dependent"},
        )

        response = client.post(
            "/api/accounts/federated/begin",
            json={"id_token": "id-tok", "expected_role": "manager"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "ACCOUNT_ROLE_MISMATCH"
        assert account_id in gateway.signed_out

    def test_unsupported_provider(self, client):
        response = client.post(
            "/api/accounts/federated/begin", json={"provider": "myspace", "id_token": "x"}
        )
        assert response.status_code == 403

    def test_redirect(self, client, gateway):
        gateway.register_redirect_code("auth-code", "google", "bo@example.com")

        response = client.post("/api/accounts/federated/redirect", json={"auth_code": "auth-code"})

        assert response.status_code == 200
        assert response.json()["status"] == "pending_completion"


class TestMeAndPasswordReset:
    def test_me(self, client, signup):
        account_id, headers = signup("ana@example.com", full_name="Ana")

        response = client.get("/api/accounts/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["id"] == account_id
        assert response.json()["profile"]["full_name"] == "Ana"

    def test_password_reset_always_accepted(self, client, gateway, signup):
        signup("ana@example.com")

        known = client.post("/api/accounts/password-reset", json={"email": "ana@example.com"})
        unknown = client.post("/api/accounts/password-reset", json={"email": "who@example.com"})

        assert known.status_code == unknown.status_code == 202
        assert known.json() == {"status": "sent"}
        assert [m["email"] for m in gateway.outbox if m["kind"] == "password_reset"] == [
            "ana@example.com"
        ]
