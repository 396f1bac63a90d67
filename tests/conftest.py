import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from app.database import Base, get_db
from app.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory schema per test; services commit freely."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def department(db_session):
    from app.models.department import Department

    dept = Department(name="Engineering", code="ENG")
    db_session.add(dept)
    db_session.commit()
    return dept


@pytest.fixture(scope="function")
def make_user(db_session, department):
    """Factory for directory users."""
    from app.models.user import User

    def _make_user(email, role, manager=None, full_name=None, dept=None):
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].title(),
            role=role,
            department_id=(dept or department).id,
            manager_id=manager.id if manager else None,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture(scope="function")
def hr_user(make_user):
    from app.models.user import UserRole
    return make_user("hr@acme.com", UserRole.HR, full_name="Hannah HR")


@pytest.fixture(scope="function")
def manager(make_user):
    from app.models.user import UserRole
    return make_user("manager@acme.com", UserRole.MANAGER, full_name="Morgan Manager")


@pytest.fixture(scope="function")
def employee(make_user, manager):
    from app.models.user import UserRole
    return make_user("employee@acme.com", UserRole.EMPLOYEE, manager=manager, full_name="Emery Employee")


@pytest.fixture(scope="function")
def other_manager(make_user):
    from app.models.user import UserRole
    return make_user("other.manager@acme.com", UserRole.MANAGER)


@pytest.fixture(scope="function")
def other_employee(make_user, other_manager):
    from app.models.user import UserRole
    return make_user("other.employee@acme.com", UserRole.EMPLOYEE, manager=other_manager)


@pytest.fixture(scope="function")
def cycle(db_session, hr_user):
    from app.models.review_cycle import CycleStatus, ReviewCycle

    cycle = ReviewCycle(
        label="Q3 2026",
        period_start=date(2026, 7, 1),
        period_end=date(2026, 9, 30),
        status=CycleStatus.OPEN.value,
        created_by=hr_user.id,
    )
    db_session.add(cycle)
    db_session.commit()
    return cycle


@pytest.fixture(scope="function")
def actor():
    """Builds the workflow Actor for a directory user."""
    from app.services.directory import Actor
    return Actor.from_user


@pytest.fixture(scope="function")
def workflow(db_session):
    from app.services.workflow import WorkflowEngine
    return WorkflowEngine(db_session)


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens the way the identity service does."""
    from app.services.auth import create_access_token

    def _get_token(user):
        return create_access_token(data={
            "sub": user.email,
            "role": user.role.value,
            "type": "access"
        })
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
