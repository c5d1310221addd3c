"""
Client Files Portal - Login History Tests

Run with: pytest tests/test_login_history.py -v
"""

from datetime import timedelta

import pytest

from portal.auth import history
from portal.auth.models import LoginHistory, utcnow
from portal.config import settings
from tests.conftest import login_headers


@pytest.fixture
def add_entries(db_session):
    """Insert attempts for `user` directly, `age` old."""

    def _add(user, count, success=True, age=timedelta(0), fail_reason=None):
        for _ in range(count):
            db_session.add(
                LoginHistory(
                    user_id=user.id,
                    success=success,
                    fail_reason=None if success else fail_reason or history.REASON_INVALID_PASSWORD,
                    ip_address="127.0.0.1",
                    created_at=utcnow() - age,
                )
            )
        db_session.commit()

    return _add


class TestOwnHistory:

    def test_pagination(self, client, regular_user, add_entries):
        add_entries(regular_user, 24)
        headers = login_headers(client, regular_user)

        response = client.get("/api/login-history?page=2&limit=10", headers=headers)

        assert response.status_code == 200
        data = response.json()
        # 24 seeded + the login above
        assert data["total"] == 25
        assert data["totalPages"] == 3
        assert data["page"] == 2
        assert len(data["entries"]) == 10

    def test_newest_first(self, client, regular_user, add_entries):
        add_entries(regular_user, 1, age=timedelta(days=3))
        headers = login_headers(client, regular_user)

        entries = client.get("/api/login-history", headers=headers).json()["entries"]

        assert entries[0]["createdAt"] > entries[1]["createdAt"]

    def test_success_filter(self, client, regular_user, add_entries):
        add_entries(regular_user, 3, success=False)
        headers = login_headers(client, regular_user)

        data = client.get("/api/login-history?success=false", headers=headers).json()

        assert data["total"] == 3
        assert all(entry["failReason"] == "Invalid password" for entry in data["entries"])

    def test_date_filter(self, client, regular_user, add_entries):
        add_entries(regular_user, 2, age=timedelta(days=10))
        headers = login_headers(client, regular_user)
        start = (utcnow() - timedelta(days=1)).isoformat()

        data = client.get(
            "/api/login-history", params={"startDate": start}, headers=headers
        ).json()

        assert data["total"] == 1

    def test_only_own_entries(self, client, regular_user, manager, add_entries):
        add_entries(manager, 5)
        headers = login_headers(client, regular_user)

        data = client.get("/api/login-history", headers=headers).json()

        assert data["total"] == 1
        assert data["entries"][0]["userId"] == str(regular_user.id)


class TestAdminHistory:

    def test_all_requires_admin(self, client, manager):
        response = client.get("/api/login-history/all", headers=login_headers(client, manager))

        assert response.status_code == 403

    def test_all_with_user_filter(self, client, admin, regular_user, add_entries):
        add_entries(regular_user, 4)
        headers = login_headers(client, admin)

        everything = client.get("/api/login-history/all", headers=headers).json()
        filtered = client.get(
            "/api/login-history/all", params={"userId": str(regular_user.id)}, headers=headers
        ).json()

        assert everything["total"] == 5
        assert filtered["total"] == 4

    def test_admin_reads_user_history(self, client, admin, regular_user, add_entries):
        add_entries(regular_user, 2)

        response = client.get(
            f"/api/login-history/user/{regular_user.id}", headers=login_headers(client, admin)
        )

        assert response.json()["total"] == 2


class TestStats:

    def test_own_stats(self, client, regular_user, add_entries):
        add_entries(regular_user, 1, success=False)
        add_entries(regular_user, 2, age=timedelta(days=30))
        headers = login_headers(client, regular_user)

        stats = client.get("/api/login-history/stats", headers=headers).json()

        assert stats == {
            "total": 4,
            "successful": 3,
            "failed": 1,
            "successRate": 75.0,
            "recentLogins": 2,
        }

    def test_non_admin_user_id_ignored(self, client, regular_user, manager, add_entries):
        add_entries(manager, 10)
        headers = login_headers(client, regular_user)

        stats = client.get(
            "/api/login-history/stats", params={"userId": str(manager.id)}, headers=headers
        ).json()

        assert stats["total"] == 1

    def test_admin_global_and_scoped(self, client, admin, manager, add_entries):
        add_entries(manager, 3)
        headers = login_headers(client, admin)

        global_stats = client.get("/api/login-history/stats", headers=headers).json()
        scoped = client.get(
            "/api/login-history/stats", params={"userId": str(manager.id)}, headers=headers
        ).json()

        assert global_stats["total"] == 4
        assert scoped["total"] == 3

    def test_empty_stats(self, db_session, regular_user):
        assert history.stats(db_session, regular_user.id)["success_rate"] == 0.0


class TestCleanup:

    def test_cleanup_default_retention(self, client, admin, regular_user, add_entries):
        add_entries(regular_user, 3, age=timedelta(days=91))
        add_entries(regular_user, 2, age=timedelta(days=10))

        response = client.post("/api/login-history/cleanup", headers=login_headers(client, admin))

        assert response.status_code == 200
        assert response.json()["count"] == 3

    def test_cleanup_custom_days(self, client, admin, regular_user, add_entries):
        add_entries(regular_user, 2, age=timedelta(days=10))

        response = client.post(
            "/api/login-history/cleanup",
            json={"daysToKeep": 7},
            headers=login_headers(client, admin),
        )

        assert response.json()["count"] == 2

    def test_cleanup_body_without_days_uses_configured_retention(
        self, client, monkeypatch, admin, regular_user, add_entries
    ):
        monkeypatch.setattr(settings, "LOGIN_HISTORY_RETENTION_DAYS", 30)
        add_entries(regular_user, 2, age=timedelta(days=40))
        add_entries(regular_user, 1, age=timedelta(days=10))

        response = client.post(
            "/api/login-history/cleanup", json={}, headers=login_headers(client, admin)
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_cleanup_rejects_non_positive_days(self, client, admin):
        response = client.post(
            "/api/login-history/cleanup",
            json={"daysToKeep": 0},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 400

    def test_cleanup_requires_admin(self, client, regular_user):
        response = client.post(
            "/api/login-history/cleanup", headers=login_headers(client, regular_user)
        )

        assert response.status_code == 403
