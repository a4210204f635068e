"""
Tests for the /api/auth endpoints and the token decorators.
"""
from datetime import datetime, timedelta

import jwt

from workflowhr.auth import generate_token
from workflowhr.config import Config
from workflowhr.database import OTP, User
from workflowhr.services.otp_service import OTPService
from tests.conftest import DEFAULT_PASSWORD, auth_headers, create_company, create_user

SIGNUP = {
    "email": "founder@acme.com",
    "password": "Founder1!",
    "full_name": "Fiona Founder",
    "company_name": "Acme Corp",
}


class TestSignup:

    def test_signup_creates_company_admin(self, client):
        response = client.post("/api/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        data = response.get_json()
        assert data["user"]["role"] == "admin"
        assert data["company"]["name"] == "Acme Corp"
        assert data["access_token"]
        assert data["refresh_token"]

    def test_signup_seeds_company_defaults(self, client):
        data = client.post("/api/auth/signup", json=SIGNUP).get_json()
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        types = client.get("/api/leaves/types", headers=headers).get_json()["leave_types"]
        working_days = client.get("/api/company/working-days", headers=headers).get_json()["working_days"]

        assert "Casual Leave" in [t["name"] for t in types]
        assert working_days["working_days_per_week"] == 5
        assert working_days["saturday_working"] is False

    def test_duplicate_email(self, client):
        client.post("/api/auth/signup", json=SIGNUP)
        response = client.post("/api/auth/signup", json={**SIGNUP, "company_name": "Other"})
        assert response.status_code == 409

    def test_weak_password(self, client):
        response = client.post("/api/auth/signup", json={**SIGNUP, "password": "weak"})
        assert response.status_code == 400

    def test_missing_fields(self, client):
        response = client.post("/api/auth/signup", json={"email": "a@b.com"})
        assert response.status_code == 400
        assert "Missing required fields" in response.get_json()["message"]


class TestLogin:

    def test_login_success(self, client, tenant):
        response = client.post("/api/auth/login", json={
            "email": tenant.employee.email, "password": DEFAULT_PASSWORD,
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["user"]["id"] == tenant.employee.id
        assert data["user"]["employee_code"].startswith("EMP")
        assert data["token_type"] == "Bearer"

    def test_login_email_is_case_insensitive(self, client, tenant):
        response = client.post("/api/auth/login", json={
            "email": tenant.hr.email.upper(), "password": DEFAULT_PASSWORD,
        })
        assert response.status_code == 200

    def test_wrong_password(self, client, tenant):
        response = client.post("/api/auth/login", json={"email": tenant.hr.email, "password": "Wrong1!xx"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid credentials"

    def test_inactive_user_cannot_login(self, client):
        company_id = create_company()
        user = create_user(company_id, "employee", is_active=False)
        response = client.post("/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 401


class TestTokens:

    def test_missing_token(self, client):
        response = client.get("/api/auth/profile")
        assert response.status_code == 401
        assert response.get_json()["message"] == "Authentication token is missing"

    def test_garbage_token(self, client):
        response = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid token"

    def test_expired_token(self, client, tenant):
        payload = {
            "user_id": tenant.hr.id,
            "role": "hr",
            "company_id": tenant.company_id,
            "type": "access",
            "iat": datetime.utcnow() - timedelta(hours=2),
            "exp": datetime.utcnow() - timedelta(hours=1),
        }
        token = jwt.encode(payload, Config.JWT_SECRET_KEY, algorithm=Config.JWT_ALGORITHM)

        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.get_json()["message"] == "Token has expired"

    def test_token_signed_with_other_key(self, client, tenant):
        token = jwt.encode(
            {"user_id": tenant.hr.id, "type": "access", "exp": datetime.utcnow() + timedelta(hours=1)},
            "some-other-secret-that-is-long-enough", algorithm="HS256",
        )
        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client, tenant):
        token = generate_token(tenant.hr, "refresh")
        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_refresh(self, client, tenant):
        response = client.post("/api/auth/refresh", json={"refresh_token": generate_token(tenant.hr, "refresh")})

        assert response.status_code == 200
        new_token = response.get_json()["access_token"]
        profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {new_token}"})
        assert profile.status_code == 200

    def test_refresh_rejects_access_token(self, client, tenant):
        response = client.post("/api/auth/refresh", json={"refresh_token": generate_token(tenant.hr)})
        assert response.status_code == 401

    def test_role_is_read_from_database(self, client, tenant, db):
        headers = auth_headers(tenant.hr)
        db.query(User).filter(User.id == tenant.hr.id).update({"role": "employee"})
        db.commit()

        response = client.get("/api/employees", headers=headers)

        assert response.status_code == 403

    def test_deactivated_user_token_rejected(self, client, tenant, db):
        headers = auth_headers(tenant.employee)
        db.query(User).filter(User.id == tenant.employee.id).update({"is_active": False})
        db.commit()

        assert client.get("/api/auth/profile", headers=headers).status_code == 401


class TestProfileAndPasswords:

    def test_profile(self, client, tenant):
        response = client.get("/api/auth/profile", headers=auth_headers(tenant.employee))

        assert response.status_code == 200
        user = response.get_json()["user"]
        assert user["email"] == tenant.employee.email
        assert user["company_name"] == "Acme Corp"
        assert user["team_lead_id"] == tenant.team_lead.id

    def test_logout(self, client, tenant):
        response = client.post("/api/auth/logout", headers=auth_headers(tenant.employee))
        assert response.status_code == 200

    def test_change_password(self, client, tenant):
        response = client.post("/api/auth/change-password", headers=auth_headers(tenant.employee), json={
            "current_password": DEFAULT_PASSWORD, "new_password": "N3wPassword!",
        })
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": tenant.employee.email, "password": "N3wPassword!"})
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client, tenant):
        response = client.post("/api/auth/change-password", headers=auth_headers(tenant.employee), json={
            "current_password": "Wrong1!xx", "new_password": "N3wPassword!",
        })
        assert response.status_code == 400

    def test_otp_unknown_email(self, client):
        response = client.post("/api/auth/forgot-password/send-otp", json={"email": "nobody@example.com"})
        assert response.status_code == 404

    def test_otp_password_reset(self, client, tenant, db):
        db.add(OTP(
            email=tenant.employee.email,
            otp_code="123456",
            expires_at=datetime.utcnow() + timedelta(minutes=10),
        ))
        db.commit()

        verify = client.post("/api/auth/forgot-password/verify-otp", json={
            "email": tenant.employee.email, "otp": "123456",
        })
        assert verify.status_code == 200

        reset = client.post("/api/auth/forgot-password/reset", json={
            "email": tenant.employee.email, "otp": "123456", "new_password": "Reset123!",
        })
        assert reset.status_code == 200

        reused = client.post("/api/auth/forgot-password/reset", json={
            "email": tenant.employee.email, "otp": "123456", "new_password": "Again123!",
        })
        assert reused.status_code == 400

        login = client.post("/api/auth/login", json={"email": tenant.employee.email, "password": "Reset123!"})
        assert login.status_code == 200

    def test_otp_locked_after_repeated_wrong_guesses(self, client, tenant, db):
        db.add(OTP(
            email=tenant.employee.email,
            otp_code="424242",
            expires_at=datetime.utcnow() + timedelta(minutes=10),
        ))
        db.commit()

        for guess in range(Config.OTP_MAX_ATTEMPTS):
            wrong = client.post("/api/auth/forgot-password/verify-otp", json={
                "email": tenant.employee.email, "otp": f"{guess:06d}",
            })
            assert wrong.status_code == 400

        reset = client.post("/api/auth/forgot-password/reset", json={
            "email": tenant.employee.email, "otp": "424242", "new_password": "Reset123!",
        })
        assert reset.status_code == 400

        login = client.post("/api/auth/login", json={"email": tenant.employee.email, "password": DEFAULT_PASSWORD})
        assert login.status_code == 200

    def test_wrong_guess_below_limit_keeps_code_usable(self, client, tenant, db):
        db.add(OTP(
            email=tenant.employee.email,
            otp_code="424242",
            expires_at=datetime.utcnow() + timedelta(minutes=10),
        ))
        db.commit()

        client.post("/api/auth/forgot-password/verify-otp", json={"email": tenant.employee.email, "otp": "000000"})
        verify = client.post("/api/auth/forgot-password/verify-otp", json={
            "email": tenant.employee.email, "otp": "424242",
        })

        assert verify.status_code == 200
        assert db.query(OTP).filter(OTP.email == tenant.employee.email).one().attempts == 1

    def test_reset_requires_otp(self, client, tenant):
        response = client.post("/api/auth/forgot-password/reset", json={
            "email": tenant.employee.email, "otp": "000000", "new_password": "Reset123!",
        })
        assert response.status_code == 400


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"
    assert "timestamp" in response.get_json()


def test_database_check(client):
    response = client.get("/test-db")
    assert response.status_code == 200
    assert response.get_json()["status"] == "connected"


def test_cors_preflight(client):
    response = client.options("/api/leaves/requests", headers={"Origin": "http://localhost:5173"})
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert "Authorization" in response.headers["Access-Control-Allow-Headers"]


def test_unknown_endpoint_returns_json(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.get_json()["message"] == "Endpoint not found"


def test_cleanup_expired_otps(db):
    now = datetime.utcnow()
    db.add_all([
        OTP(email="a@example.com", otp_code="111111", expires_at=now - timedelta(minutes=1)),
        OTP(email="b@example.com", otp_code="222222", expires_at=now + timedelta(minutes=5)),
    ])
    db.commit()

    assert OTPService.cleanup_expired_otps() == 1
    assert [o.otp_code for o in db.query(OTP).all()] == ["222222"]
