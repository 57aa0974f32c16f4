from fastapi import status

from chatty_auth.core.security import hash_token, verify_password
from chatty_auth.models.user import User


def signup_payload(**overrides):
    payload = {"email": "ann@example.com", "password": "secret1", "fullName": "Ann"}
    payload.update(overrides)
    return payload


class TestSignupEndpoint:
    """Test cases for POST /api/auth/signup"""

    def test_signup_success(self, client, db_session, outbox):
        """Signup creates an unverified user and emails a verification link"""
        response = client.post("/api/auth/signup", json=signup_payload())

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Signup successful. Please verify your email."

        user = db_session.query(User).filter(User.email == "ann@example.com").first()
        assert user is not None
        assert user.full_name == "Ann"
        assert user.is_email_verified is False
        assert user.is_onboarded is False
        assert verify_password("secret1", user.password_hash)
        assert user.profile_pic.endswith(f"seed={user.id}")
        assert user.email_verification_token is not None
        assert user.email_verification_token_expires is not None
        assert user.last_verification_email_sent_at is not None

        outbox.verification.assert_called_once()
        assert outbox.verification.call_args.kwargs["to_email"] == "ann@example.com"
        outbox.presence.assert_called_once()

    def test_signup_stores_only_token_hash(self, client, db_session, emailed_token):
        """The raw token goes out by email; only its hash is persisted"""
        client.post("/api/auth/signup", json=signup_payload())

        raw_token = emailed_token()
        user = db_session.query(User).filter(User.email == "ann@example.com").first()
        assert user.email_verification_token != raw_token
        assert user.email_verification_token == hash_token(raw_token)

    def test_signup_link_points_to_frontend(self, client, outbox):
        client.post("/api/auth/signup", json=signup_payload())

        url = outbox.verification.call_args.kwargs["verification_url"]
        assert url.startswith("http://localhost:5173/verify-email?token=")

    def test_signup_duplicate_email(self, client, create_test_user):
        """Signing up twice with the same email fails"""
        create_test_user(email="ann@example.com")

        response = client.post("/api/auth/signup", json=signup_payload())

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Email already exists, please use a different one"

    def test_signup_missing_fields_listed_together(self, client):
        response = client.post("/api/auth/signup", json={"email": "ann@example.com"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["detail"] == "All fields are required"
        assert data["missingFields"] == ["password", "fullName"]

    def test_signup_without_body(self, client):
        response = client.post("/api/auth/signup")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["missingFields"] == ["email", "password", "fullName"]

    def test_signup_blank_field_counts_as_missing(self, client):
        response = client.post("/api/auth/signup", json=signup_payload(fullName="   "))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["missingFields"] == ["fullName"]

    def test_signup_short_password(self, client, db_session):
        response = client.post("/api/auth/signup", json=signup_payload(password="12345"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Password must be at least 6 characters"
        assert db_session.query(User).count() == 0

    def test_signup_invalid_email_format(self, client):
        response = client.post("/api/auth/signup", json=signup_payload(email="invalid-email-format"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Invalid email format"

    def test_signup_email_with_trailing_newline_rejected(self, client, create_test_user, db_session):
        """A trailing newline must not create a second account for the same address"""
        create_test_user(email="ann@example.com")

        response = client.post("/api/auth/signup", json=signup_payload(email="ann@example.com\n"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Invalid email format"
        assert db_session.query(User).count() == 1

    def test_signup_accepts_snake_case_fields(self, client, db_session):
        payload = {"email": "ann@example.com", "password": "secret1", "full_name": "Ann"}

        response = client.post("/api/auth/signup", json=payload)

        assert response.status_code == status.HTTP_201_CREATED
        assert db_session.query(User).count() == 1

