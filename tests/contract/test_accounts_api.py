"""
Contract tests for the account endpoints.

Tests verify, against the real FastAPI app with in-memory repositories:
- Request validation and HTTP status codes
- Verification and recovery code handling
- Access and reset token issuing
- Emails triggered by each flow
"""

from datetime import timedelta

import pytest
from jose import jwt

from iptv_api.src.services.email_service import EmailMessageType

REGISTER_BODY = {
    "username": "jdoe",
    "password": "s3cret-pass",
    "email": "JDoe@Mail.com",
    "firstName": "John",
    "lastName": "Doe",
}


def decode(token, settings):
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


# ============================================================================
# API KEY
# ============================================================================


class TestApiKey:
    """The shared client key guards every non-operational route."""

    def test_missing_api_key_is_rejected(self, app):
        from fastapi.testclient import TestClient

        response = TestClient(app).post("/login", json={"username": "a", "password": "b"})

        assert response.status_code == 403
        assert response.json() == {"detail": "Invalid API key"}

    def test_wrong_api_key_is_rejected(self, client):
        response = client.get("/profiles", headers={"X-API-Key": "nope"})

        assert response.status_code == 403
        assert response.json() == {"detail": "Invalid API key"}

    def test_health_does_not_need_api_key(self, app):
        from fastapi.testclient import TestClient

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_responses_carry_correlation_id_and_security_headers(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_ready_without_database_is_unavailable(self, client):
        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
        assert response.json()["checks"] == {"database": "unhealthy"}

    def test_metrics_count_requests_by_route(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert 'endpoint="/health"' in response.text


# ============================================================================
# REGISTRATION AND VERIFICATION
# ============================================================================


class TestRegister:
    """POST /register"""

    def test_register_creates_unverified_user_and_emails_code(self, client, user_repo, email_service):
        response = client.post("/register", json=REGISTER_BODY)

        assert response.status_code == 201
        assert "message" in response.json()

        user = next(iter(user_repo.users.values()))
        assert user.username == "jdoe"
        assert user.email == "jdoe@mail.com"
        assert user.is_verified is False
        assert user.password_hash != "s3cret-pass"
        assert user.verification_code.isdigit() and len(user.verification_code) == 6
        assert user.verification_expires is not None

        recipient, _, context = email_service.last(EmailMessageType.VERIFY)
        assert recipient == "jdoe@mail.com"
        assert context["verification_code"] == user.verification_code
        assert context["first_name"] == "John"

    @pytest.mark.parametrize("missing", ["username", "password", "email", "firstName", "lastName"])
    def test_register_requires_every_field(self, client, missing):
        body = {k: v for k, v in REGISTER_BODY.items() if k != missing}

        response = client.post("/register", json=body)

        assert response.status_code == 400
        assert isinstance(response.json()["detail"], list)

    def test_register_rejects_blank_values(self, client):
        response = client.post("/register", json={**REGISTER_BODY, "firstName": "   "})

        assert response.status_code == 400

    def test_register_trims_identifiers_but_not_password(self, client, user_repo, auth_service):
        body = {**REGISTER_BODY, "username": "  jdoe ", "password": " s3cret pass "}

        response = client.post("/register", json=body)

        assert response.status_code == 201
        user = next(iter(user_repo.users.values()))
        assert user.username == "jdoe"
        assert auth_service.verify_password(" s3cret pass ", user.password_hash) is True
        assert auth_service.verify_password("s3cret pass", user.password_hash) is False

    def test_register_accepts_whitespace_password(self, client):
        response = client.post("/register", json={**REGISTER_BODY, "password": "   "})

        assert response.status_code == 201

    def test_register_rejects_duplicate_username(self, client, make_user):
        make_user(username="jdoe", email="other@mail.com")

        response = client.post("/register", json=REGISTER_BODY)

        assert response.status_code == 400
        assert response.json()["detail"] == "Username already exists"

    def test_register_rejects_duplicate_email(self, client, make_user):
        make_user(username="someone", email="jdoe@mail.com")

        response = client.post("/register", json=REGISTER_BODY)

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_register_rolls_back_when_email_fails(self, client, user_repo, email_service):
        email_service.fail = True

        response = client.post("/register", json=REGISTER_BODY)

        assert response.status_code == 500
        assert user_repo.users == {}


class TestVerify:
    """POST /verify"""

    def test_verify_marks_user_verified(self, client, make_user, user_repo, email_service):
        user = make_user(verified=False, code="123456")

        response = client.post("/verify", json={"code": "123456"})

        assert response.status_code == 200
        stored = user_repo.users[user.id]
        assert stored.is_verified is True
        assert stored.verification_code is None
        assert stored.verification_expires is None

        _, _, context = email_service.last(EmailMessageType.CONGRATULATIONS)
        assert context["username"] == "jdoe"

    def test_verify_rejects_unknown_code(self, client):
        response = client.post("/verify", json={"code": "999999"})

        assert response.status_code == 400

    def test_verify_rejects_expired_code(self, client, make_user, user_repo):
        user = make_user(verified=False, code="123456", expires_in=timedelta(minutes=-1))

        response = client.post("/verify", json={"code": "123456"})

        assert response.status_code == 400
        assert user_repo.users[user.id].is_verified is False

    def test_verify_requires_code(self, client):
        response = client.post("/verify", json={})

        assert response.status_code == 400

    def test_verify_succeeds_even_if_congratulations_email_fails(self, client, make_user, user_repo, email_service):
        user = make_user(verified=False, code="123456")
        email_service.fail = True

        response = client.post("/verify", json={"code": "123456"})

        assert response.status_code == 200
        assert user_repo.users[user.id].is_verified is True


class TestResendVerification:
    """POST /resend-verification"""

    def test_resend_issues_new_code(self, client, make_user, user_repo, email_service):
        user = make_user(verified=False, code="111111")

        response = client.post("/resend-verification", json={"email": "jdoe@mail.com"})

        assert response.status_code == 200
        stored = user_repo.users[user.id]
        _, _, context = email_service.last(EmailMessageType.VERIFY)
        assert context["verification_code"] == stored.verification_code

    def test_resend_unknown_email(self, client):
        response = client.post("/resend-verification", json={"email": "ghost@mail.com"})

        assert response.status_code == 404

    def test_resend_already_verified(self, client, make_user):
        make_user(verified=True)

        response = client.post("/resend-verification", json={"email": "jdoe@mail.com"})

        assert response.status_code == 400

    def test_resend_email_failure(self, client, make_user, email_service):
        make_user(verified=False, code="111111")
        email_service.fail = True

        response = client.post("/resend-verification", json={"email": "jdoe@mail.com"})

        assert response.status_code == 500


# ============================================================================
# LOGIN
# ============================================================================


class TestLogin:
    """POST /login"""

    def test_login_returns_access_token(self, client, make_user, settings):
        user = make_user()

        response = client.post("/login", json={"username": "jdoe", "password": "s3cret-pass"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == settings.jwt_access_token_expire_minutes * 60

        claims = decode(body["token"], settings)
        assert claims["sub"] == user.id
        assert claims["type"] == "access"

    def test_login_password_whitespace_is_significant(self, client, make_user):
        make_user(password=" s3cret-pass ")

        exact = client.post("/login", json={"username": " jdoe ", "password": " s3cret-pass "})
        trimmed = client.post("/login", json={"username": "jdoe", "password": "s3cret-pass"})

        assert exact.status_code == 200
        assert trimmed.status_code == 400

    def test_login_wrong_password(self, client, make_user):
        make_user()

        response = client.post("/login", json={"username": "jdoe", "password": "wrong"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_unknown_user(self, client):
        response = client.post("/login", json={"username": "ghost", "password": "whatever"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_unverified_account(self, client, make_user):
        make_user(verified=False, code="123456")

        response = client.post("/login", json={"username": "jdoe", "password": "s3cret-pass"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Account is not verified"

    def test_login_requires_both_fields(self, client):
        response = client.post("/login", json={"username": "jdoe"})

        assert response.status_code == 400


# ============================================================================
# PASSWORD RECOVERY
# ============================================================================


class TestPasswordRecovery:
    """POST /forgot-password, /verify-reset-code and /reset-password"""

    def test_forgot_password_emails_recovery_code(self, client, make_user, user_repo, email_service):
        user = make_user()

        response = client.post("/forgot-password", json={"email": "jdoe@mail.com"})

        assert response.status_code == 200
        stored = user_repo.users[user.id]
        assert stored.verification_code is not None
        _, _, context = email_service.last(EmailMessageType.RECOVERY)
        assert context["verification_code"] == stored.verification_code

    def test_forgot_password_unknown_email(self, client):
        response = client.post("/forgot-password", json={"email": "ghost@mail.com"})

        assert response.status_code == 404

    def test_forgot_password_requires_email(self, client):
        response = client.post("/forgot-password", json={})

        assert response.status_code == 400

    def test_verify_reset_code_returns_reset_token(self, client, make_user, settings):
        user = make_user(code="654321")

        response = client.post("/verify-reset-code", json={"verificationCode": "654321"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"]
        claims = decode(body["resetToken"], settings)
        assert claims["sub"] == user.id
        assert claims["type"] == "reset"
        assert claims["exp"] - claims["iat"] == settings.jwt_reset_token_expire_minutes * 60

    def test_verify_reset_code_unknown(self, client):
        response = client.post("/verify-reset-code", json={"verificationCode": "000000"})

        assert response.status_code == 404

    def test_verify_reset_code_expired(self, client, make_user):
        make_user(code="654321", expires_in=timedelta(seconds=-5))

        response = client.post("/verify-reset-code", json={"verificationCode": "654321"})

        assert response.status_code == 400

    def test_reset_password_full_flow(self, client, make_user, user_repo, email_service):
        user = make_user(code="654321")
        reset_token = client.post(
            "/verify-reset-code", json={"verificationCode": "654321"}
        ).json()["resetToken"]

        response = client.post(
            "/reset-password",
            json={"newPassword": "brand-new-pass"},
            headers={"Authorization": f"Bearer {reset_token}"}
        )

        assert response.status_code == 200
        assert user_repo.users[user.id].verification_code is None
        email_service.last(EmailMessageType.PASSWORD_RESET_SUCCESS)

        login = client.post("/login", json={"username": "jdoe", "password": "brand-new-pass"})
        assert login.status_code == 200

        again = client.post(
            "/reset-password",
            json={"newPassword": "another-pass"},
            headers={"Authorization": f"Bearer {reset_token}"}
        )
        assert again.status_code == 400

    def test_reset_password_keeps_surrounding_whitespace(self, client, make_user):
        make_user(code="654321")
        reset_token = client.post(
            "/verify-reset-code", json={"verificationCode": "654321"}
        ).json()["resetToken"]

        response = client.post(
            "/reset-password",
            json={"newPassword": "  padded  "},
            headers={"Authorization": f"Bearer {reset_token}"}
        )

        assert response.status_code == 200
        assert client.post("/login", json={"username": "jdoe", "password": "  padded  "}).status_code == 200
        assert client.post("/login", json={"username": "jdoe", "password": "padded"}).status_code == 400

    def test_reset_password_requires_token(self, client):
        response = client.post("/reset-password", json={"newPassword": "brand-new-pass"})

        assert response.status_code == 401

    def test_reset_password_rejects_access_token(self, client, make_user, bearer):
        user = make_user(code="654321")

        response = client.post(
            "/reset-password",
            json={"newPassword": "brand-new-pass"},
            headers=bearer(user.id)
        )

        assert response.status_code == 403

    def test_reset_password_rejects_garbage_token(self, client):
        response = client.post(
            "/reset-password",
            json={"newPassword": "brand-new-pass"},
            headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 403

    def test_reset_password_unknown_user(self, client, auth_service):
        token = auth_service.create_reset_token("65f000000000000000000000")

        response = client.post(
            "/reset-password",
            json={"newPassword": "brand-new-pass"},
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 404


class TestRecoverUsername:
    """POST /recover-username"""

    def test_recover_username_emails_username(self, client, make_user, email_service):
        make_user()

        response = client.post("/recover-username", json={"email": "jdoe@mail.com"})

        assert response.status_code == 200
        recipient, _, context = email_service.last(EmailMessageType.USERNAME_RECOVERY)
        assert recipient == "jdoe@mail.com"
        assert context["username"] == "jdoe"

    def test_recover_username_unknown_email(self, client):
        response = client.post("/recover-username", json={"email": "ghost@mail.com"})

        assert response.status_code == 404
