import pytest
from datetime import timedelta

from app.models.user import User, UserRole
from app.services import auth as auth_service


def test_token_round_trip_keeps_claims():
    token = auth_service.create_access_token({"sub": "a@acme.com", "role": "HR", "type": "access"})
    payload = auth_service.decode_access_token(token)
    assert payload["sub"] == "a@acme.com"
    assert payload["role"] == "HR"


def test_expired_token_is_flagged():
    token = auth_service.create_access_token({"sub": "a@acme.com"}, expires_delta=timedelta(seconds=-5))
    assert auth_service.decode_access_token(token) == {"error": "TOKEN_EXPIRED"}


def test_tampered_token_is_rejected():
    token = auth_service.create_access_token({"sub": "a@acme.com"})
    assert auth_service.decode_access_token(token + "x") is None


@pytest.mark.parametrize("raw,expected", [
    ("hr", UserRole.HR),
    ("Manager", UserRole.MANAGER),
    (" EMPLOYEE ", UserRole.EMPLOYEE),
    ("admin", UserRole.HR),
])
def test_role_parsing_normalizes_casing(raw, expected):
    assert UserRole.parse(raw) == expected


def test_unknown_role_is_rejected():
    with pytest.raises(ValueError):
        UserRole.parse("contractor")


def test_missing_token_is_rejected(client):
    response = client.get("/api/pms/my-assigned-goals")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_token_for_unknown_user_is_rejected(client, get_token, db_session):
    ghost = User(email="ghost@acme.com", role=UserRole.EMPLOYEE)
    response = client.get(
        "/api/pms/my-assigned-goals",
        headers={"Authorization": f"Bearer {get_token(ghost)}"},
    )
    assert response.status_code == 401


def test_role_comes_from_directory_not_token(client, employee, cycle):
    # Token claims HR, directory says employee
    token = auth_service.create_access_token({"sub": employee.email, "role": "HR", "type": "access"})
    response = client.post(
        "/api/pms/cycles",
        json={"label": "Q4", "period_start": "2026-10-01", "period_end": "2026-12-31"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 403
    assert response.json()["errors"][0]["code"] == "Unauthorized"
