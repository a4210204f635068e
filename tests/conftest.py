"""
Shared fixtures for the WorkFlowHR API tests.

Every test runs against a fresh in-memory SQLite database. Email delivery is
disabled by blanking the SMTP credentials, so EmailService calls return False.
"""
import itertools
import os
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing-only"
os.environ["EMAIL_USER"] = ""
os.environ["EMAIL_PASS"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from werkzeug.security import generate_password_hash  # noqa: E402

from workflowhr.app import app as flask_app  # noqa: E402
from workflowhr.auth import generate_token  # noqa: E402
from workflowhr.database import Base, engine, SessionLocal, User, EmployeeProfile  # noqa: E402
from workflowhr.services.company_service import CompanyService  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd!"

_sequence = itertools.count(1)


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as test_client:
        yield test_client


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


def create_company(name="Acme Corp"):
    session = SessionLocal()
    try:
        company = CompanyService.create_company(session, name)
        session.commit()
        return company.id
    finally:
        session.close()


def create_user(company_id, role="employee", email=None, password=DEFAULT_PASSWORD, full_name=None,
                team_lead_id=None, salary=Decimal("120000"), with_profile=None, is_active=True):
    """Insert a user (plus employee profile for employees and team leads)"""
    n = next(_sequence)
    email = email or f"{role}{n}@example.com"
    full_name = full_name or f"{role.replace('_', ' ').title()} {n}"
    if with_profile is None:
        with_profile = role in ("employee", "team_lead")

    session = SessionLocal()
    try:
        user = User(
            company_id=company_id,
            email=email,
            password_hash=generate_password_hash(password),
            full_name=full_name,
            role=role,
            is_active=is_active,
        )
        session.add(user)
        session.flush()
        if with_profile:
            session.add(EmployeeProfile(
                company_id=company_id,
                user_id=user.id,
                employee_code=f"EMP{n:09d}",
                department="Engineering",
                designation="Engineer",
                salary=salary,
                joining_date=date(2024, 1, 15),
                team_lead_id=team_lead_id,
            ))
        session.commit()
        return SimpleNamespace(
            id=user.id, role=role, company_id=company_id, email=email,
            full_name=full_name, password=password,
        )
    finally:
        session.close()


def auth_headers(user):
    return {"Authorization": f"Bearer {generate_token(user)}"}


def next_monday(weeks_ahead=0):
    """A Monday strictly after today"""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday())) + timedelta(weeks=weeks_ahead)


@pytest.fixture
def tenant():
    """A company with one user per role; the employee reports to the team lead"""
    company_id = create_company("Acme Corp")
    admin = create_user(company_id, "admin")
    hr_manager = create_user(company_id, "hr_manager")
    hr = create_user(company_id, "hr")
    team_lead = create_user(company_id, "team_lead")
    employee = create_user(company_id, "employee", team_lead_id=team_lead.id)
    return SimpleNamespace(
        company_id=company_id, admin=admin, hr_manager=hr_manager, hr=hr,
        team_lead=team_lead, employee=employee,
    )


@pytest.fixture
def other_tenant():
    company_id = create_company("Globex")
    hr = create_user(company_id, "hr")
    employee = create_user(company_id, "employee")
    return SimpleNamespace(company_id=company_id, hr=hr, employee=employee)


def leave_type_id(client, user, name="Casual Leave"):
    types = client.get("/api/leaves/types", headers=auth_headers(user)).get_json()["leave_types"]
    return next(t["id"] for t in types if t["name"] == name)
