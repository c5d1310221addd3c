"""
Client Files Portal - User Administration Tests

Run with: pytest tests/test_users_admin.py -v
"""

from uuid import uuid4

from sqlmodel import select

from portal.admin.service import generate_temporary_password
from portal.auth.models import LoginHistory, Role, Session, User
from portal.auth.password import password_strength_errors
from tests.conftest import flush_emails, login_headers, login_user


class TestTemporaryPassword:

    def test_meets_strength_policy(self):
        for _ in range(50):
            password = generate_temporary_password()
            assert len(password) == 12
            assert password_strength_errors(password) == []

    def test_unique(self):
        assert generate_temporary_password() != generate_temporary_password()


class TestListUsers:

    def test_list_paginated(self, client, admin, make_user):
        for _ in range(12):
            make_user()

        data = client.get(
            "/api/users", params={"page": 2, "limit": 10}, headers=login_headers(client, admin)
        ).json()

        assert data["total"] == 13
        assert data["totalPages"] == 2
        assert len(data["users"]) == 3

    def test_search(self, client, admin, make_user):
        make_user(email="alice@example.com", first_name="Alice")
        make_user(email="bob@example.com", first_name="Bob")

        data = client.get(
            "/api/users", params={"search": "ALI"}, headers=login_headers(client, admin)
        ).json()

        assert [u["email"] for u in data["users"]] == ["alice@example.com"]

    def test_search_wildcards_match_literally(self, client, admin, make_user):
        make_user(email="a_b@example.com")
        make_user(email="axb@example.com")
        headers = login_headers(client, admin)

        underscore = client.get("/api/users", params={"search": "a_b"}, headers=headers).json()
        percent = client.get("/api/users", params={"search": "%"}, headers=headers).json()

        assert [u["email"] for u in underscore["users"]] == ["a_b@example.com"]
        assert percent["users"] == []

    def test_filter_by_role_and_status(self, client, admin, manager, inactive_user):
        headers = login_headers(client, admin)

        managers = client.get("/api/users", params={"role": "MANAGER"}, headers=headers).json()
        inactive = client.get("/api/users", params={"isActive": "false"}, headers=headers).json()

        assert [u["id"] for u in managers["users"]] == [str(manager.id)]
        assert [u["id"] for u in inactive["users"]] == [str(inactive_user.id)]

    def test_sort_by_email(self, client, admin, make_user):
        make_user(email="zed@test.com")
        make_user(email="amy@test.com")

        data = client.get(
            "/api/users",
            params={"sortBy": "email", "sortOrder": "asc"},
            headers=login_headers(client, admin),
        ).json()

        emails = [u["email"] for u in data["users"]]
        assert emails == sorted(emails)

    def test_get_user(self, client, admin, regular_user):
        headers = login_headers(client, admin)

        found = client.get(f"/api/users/{regular_user.id}", headers=headers)
        missing = client.get(f"/api/users/{uuid4()}", headers=headers)

        assert found.json()["email"] == regular_user.email
        assert missing.status_code == 404


class TestUpdateUser:

    def test_update_names(self, client, admin, regular_user):
        response = client.put(
            f"/api/users/{regular_user.id}",
            json={"firstName": "Renamed"},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 200
        assert response.json()["firstName"] == "Renamed"
        assert response.json()["lastName"] == regular_user.last_name

    def test_update_email_conflict(self, client, admin, regular_user, manager):
        response = client.put(
            f"/api/users/{regular_user.id}",
            json={"email": manager.email},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Email is already in use"


class TestDeleteUser:

    def test_soft_delete_deactivates_and_revokes(self, client, db_session, admin, regular_user):
        tokens = login_user(client, regular_user.email)

        response = client.delete(
            f"/api/users/{regular_user.id}", headers=login_headers(client, admin)
        )

        assert response.status_code == 200
        assert response.json()["message"] == "User deactivated successfully"
        db_session.refresh(regular_user)
        assert regular_user.is_active is False
        refresh = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert refresh.status_code == 401
        assert login_user(client, regular_user.email) is None

    def test_cannot_delete_self(self, client, admin):
        response = client.delete(f"/api/users/{admin.id}", headers=login_headers(client, admin))

        assert response.status_code == 403
        assert response.json()["error"] == "You cannot delete your own account"

    def test_permanent_delete_cascades(self, client, db_session, super_admin, regular_user):
        login_user(client, regular_user.email)
        user_id = regular_user.id

        response = client.delete(
            f"/api/users/{user_id}/permanent", headers=login_headers(client, super_admin)
        )

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(User, user_id) is None
        assert db_session.exec(select(Session).where(Session.user_id == user_id)).all() == []
        assert db_session.exec(
            select(LoginHistory).where(LoginHistory.user_id == user_id)
        ).all() == []

    def test_permanent_delete_requires_super_admin(self, client, admin, regular_user):
        response = client.delete(
            f"/api/users/{regular_user.id}/permanent", headers=login_headers(client, admin)
        )

        assert response.status_code == 403


class TestRoleAndStatus:

    def test_change_role(self, client, super_admin, regular_user):
        response = client.patch(
            f"/api/users/{regular_user.id}/role",
            json={"role": "MANAGER"},
            headers=login_headers(client, super_admin),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "MANAGER"

    def test_cannot_change_own_role(self, client, super_admin):
        response = client.patch(
            f"/api/users/{super_admin.id}/role",
            json={"role": "USER"},
            headers=login_headers(client, super_admin),
        )

        assert response.status_code == 403

    def test_invalid_role(self, client, super_admin, regular_user):
        response = client.patch(
            f"/api/users/{regular_user.id}/role",
            json={"role": "OWNER"},
            headers=login_headers(client, super_admin),
        )

        assert response.status_code == 400

    def test_reactivate(self, client, admin, inactive_user):
        response = client.patch(
            f"/api/users/{inactive_user.id}/status",
            json={"isActive": True},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 200
        assert response.json()["isActive"] is True
        assert login_user(client, inactive_user.email) is not None

    def test_deactivate_via_status(self, client, db_session, admin, regular_user):
        response = client.patch(
            f"/api/users/{regular_user.id}/status",
            json={"isActive": False},
            headers=login_headers(client, admin),
        )

        assert response.json()["isActive"] is False


class TestStatsAndProvisioning:

    def test_stats(self, client, super_admin, admin, manager, regular_user, inactive_user):
        data = client.get("/api/users/stats", headers=login_headers(client, admin)).json()

        assert data["total"] == 5
        assert data["active"] == 4
        assert data["inactive"] == 1
        assert data["unverified"] == 5
        assert data["byRole"] == {"SUPER_ADMIN": 1, "ADMIN": 1, "MANAGER": 1, "USER": 2}

    def test_provision_user(self, client, db_session, email_sender, admin):
        response = client.post(
            "/api/users",
            json={"email": "hire@test.com", "firstName": "New", "lastName": "Hire", "role": "MANAGER"},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["mustChangePassword"] is True
        assert data["user"]["isEmailVerified"] is True
        flush_emails(client)
        assert len(email_sender.of_kind("account_provisioned")) == 1

        tokens = login_user(client, "hire@test.com", data["temporaryPassword"])
        assert tokens["user"]["role"] == "MANAGER"

    def test_admin_cannot_provision_super_admin(self, client, admin):
        response = client.post(
            "/api/users",
            json={"email": "boss@test.com", "firstName": "B", "lastName": "S", "role": "SUPER_ADMIN"},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 403

    def test_provision_succeeds_when_email_fails(self, client, email_sender, admin):
        email_sender.fail = True

        response = client.post(
            "/api/users",
            json={"email": "quiet@test.com", "firstName": "Q", "lastName": "T"},
            headers=login_headers(client, admin),
        )

        assert response.status_code == 201
        assert Role(response.json()["user"]["role"]) == Role.USER
