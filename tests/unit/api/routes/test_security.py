"""Tests for security settings API routes."""

import pytest


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/v1/security/config"),
        ("put", "/api/v1/security/config"),
        ("post", "/api/v1/security/config/reset"),
    ],
)
def test_security_routes_require_auth(client, method, path) -> None:
    assert getattr(client, method)(path).status_code == 401


def test_get_config_returns_effective_policy(authenticated_client) -> None:
    response = authenticated_client.get("/api/v1/security/config")

    assert response.status_code == 200
    data = response.json()
    assert data["pbkdf2_iterations"] == 10000
    assert data["max_login_attempts"] == 5
    assert data["lockout_duration_minutes"] == 15
    assert data["password_history_count"] == 5
    assert data["password_require_special"] is True


def test_update_config(authenticated_client) -> None:
    response = authenticated_client.put(
        "/api/v1/security/config",
        json={"max_login_attempts": 3, "password_require_special": False},
    )

    assert response.status_code == 200
    assert response.json()["max_login_attempts"] == 3
    data = authenticated_client.get("/api/v1/security/config").json()
    assert data["max_login_attempts"] == 3
    assert data["password_require_special"] is False
    assert data["lockout_duration_minutes"] == 15


def test_updated_threshold_applies_to_next_login(authenticated_client, make_user) -> None:
    make_user("bob", "Tr0ub4dor&Horse")
    authenticated_client.put("/api/v1/security/config", json={"max_login_attempts": 2})

    for _ in range(2):
        authenticated_client.post(
            "/api/v1/auth/login",
            json={"username": "bob", "password": "WrongPass"},
        )
    response = authenticated_client.post(
        "/api/v1/auth/login",
        json={"username": "bob", "password": "Tr0ub4dor&Horse"},
    )

    assert response.status_code == 423


@pytest.mark.parametrize(
    "changes",
    [
        {"max_login_attempts": 0},
        {"pbkdf2_iterations": 9999},
        {"lockout_duration_minutes": 1441},
        {"password_min_length": 7},
        {"session_timeout_minutes": 4},
        {
            "password_require_uppercase": False,
            "password_require_lowercase": False,
            "password_require_numbers": False,
            "password_require_special": False,
        },
    ],
)
def test_update_config_rejects_out_of_range(authenticated_client, changes) -> None:
    response = authenticated_client.put("/api/v1/security/config", json=changes)

    assert response.status_code == 400
    assert authenticated_client.get("/api/v1/security/config").json()["max_login_attempts"] == 5


def test_reset_config(authenticated_client) -> None:
    authenticated_client.put("/api/v1/security/config", json={"password_expiry_days": 0})

    response = authenticated_client.post("/api/v1/security/config/reset")

    assert response.status_code == 200
    assert response.json()["password_expiry_days"] == 90
    assert authenticated_client.get("/api/v1/security/config").json()["password_expiry_days"] == 90
