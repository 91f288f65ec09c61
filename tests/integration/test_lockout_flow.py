"""Integration tests for lockout handling and administration."""

from fastapi.testclient import TestClient

from credwarden.db import SqlAccountStore, User, get_session


def _login(client, username: str, password: str):
    return client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )


def _create_bob(client) -> None:
    response = client.post(
        "/api/v1/accounts",
        json={
            "username": "bob",
            "password": "Tr0ub4dor&Horse",
            "must_change_password": False,
        },
    )
    assert response.status_code == 201


class TestLockoutFlow:
    """Lockout, expiry and administrative unlock end to end."""

    def test_lockout_and_admin_unlock(self, authenticated_client, app) -> None:
        _create_bob(authenticated_client)
        bob = TestClient(app)

        for _ in range(5):
            assert _login(bob, "bob", "WrongPass").status_code == 401
        assert _login(bob, "bob", "Tr0ub4dor&Horse").status_code == 423

        locked = authenticated_client.get("/api/v1/accounts/locked").json()
        assert [a["username"] for a in locked] == ["bob"]

        response = authenticated_client.post("/api/v1/accounts/bob/unlock")
        assert response.status_code == 200

        assert _login(bob, "bob", "Tr0ub4dor&Horse").status_code == 200
        assert authenticated_client.get("/api/v1/accounts/locked").json() == []

    def test_lockout_expires(self, authenticated_client, app) -> None:
        import datetime

        _create_bob(authenticated_client)
        bob = TestClient(app)
        for _ in range(5):
            _login(bob, "bob", "WrongPass")

        with get_session(app.state.db_engine) as session:
            user = session.query(User).filter(User.username == "bob").one()
            user.locked_until = datetime.datetime.now(
                datetime.timezone.utc
            ).replace(tzinfo=None) - datetime.timedelta(seconds=1)

        assert _login(bob, "bob", "Tr0ub4dor&Horse").status_code == 200
        with get_session(app.state.db_engine) as session:
            account = SqlAccountStore(session).get_by_identifier("bob")
            assert account.failed_attempts == 0
            assert account.locked_until is None

    def test_lower_threshold_applies_immediately(self, authenticated_client, app) -> None:
        _create_bob(authenticated_client)
        response = authenticated_client.put(
            "/api/v1/security/config", json={"max_login_attempts": 1}
        )
        assert response.status_code == 200

        bob = TestClient(app)
        assert _login(bob, "bob", "WrongPass").status_code == 401
        assert _login(bob, "bob", "Tr0ub4dor&Horse").status_code == 423

    def test_wrong_current_password_does_not_lock(self, authenticated_client) -> None:
        for _ in range(6):
            response = authenticated_client.post(
                "/api/v1/auth/password",
                json={"current_password": "WrongPass", "new_password": "Blue-Falcon-92x"},
            )
            assert response.status_code == 400

        assert authenticated_client.get("/api/v1/accounts/locked").json() == []
