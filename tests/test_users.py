"""
Tests for user accounts: registration, login, profile updates and lookups.
"""
import pytest


class TestRegistration:
    """Registration and login flow."""

    def test_register_hides_password(self, client, db):
        resp = client.post("/api/auth/register", json={
            "name": "Ada Lovelace", "email": "Ada@Example.com", "password": "secret123",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        user = body["data"]
        assert user["email"] == "ada@example.com"
        assert "password" not in user
        assert "skillKeys" not in user
        assert user["title"] == "Developer"

        stored = db["user"].find_one({"email": "ada@example.com"})
        assert stored["password"] != "secret123"

        for path in (f"/api/users/{user['id']}", f"/api/users/{user['id']}/profile"):
            assert "password" not in client.get(path).json()["data"]

    def test_password_never_in_list_or_login(self, client, register_user):
        account = register_user(email="grace@example.com")
        listing = client.get("/api/users").json()["data"]
        assert all("password" not in u for u in listing)
        login = client.post("/api/auth/login", json={"email": "grace@example.com", "password": "secret123"})
        assert "password" not in login.json()["data"]["user"]
        me = client.get("/api/auth/me", headers=account["headers"]).json()["data"]
        assert "password" not in me

    def test_duplicate_email_case_insensitive(self, client, db):
        first = client.post("/api/users", json={"name": "One", "email": "dup@example.com", "password": "secret123"})
        assert first.status_code == 201
        second = client.post("/api/users", json={"name": "Two", "email": "DUP@example.com", "password": "secret123"})
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "EMAIL_EXISTS"
        assert db["user"].count_documents({}) == 1

    def test_validation_collects_all_errors(self, client):
        resp = client.post("/api/users", json={"name": "A", "email": "not-an-email", "password": "123"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert len(body["error"]["details"]) == 3

    def test_password_mismatch(self, client):
        resp = client.post("/api/users", json={
            "name": "Ada", "email": "ada@example.com", "password": "secret123", "confirmPassword": "other123",
        })
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "PASSWORD_MISMATCH"

    def test_role_title_derived(self, client):
        resp = client.post("/api/users", json={
            "name": "Founder", "email": "f@example.com", "password": "secret123", "role": "founder",
        })
        assert resp.json()["data"]["title"] == "The Founder"

    def test_privileged_role_not_self_assigned(self, client):
        resp = client.post("/api/users", json={
            "name": "Mallory", "email": "m@example.com", "password": "secret123", "role": "admin",
        })
        assert resp.status_code == 403

    def test_login_errors(self, client, register_user, db):
        register_user(email="lin@example.com")
        missing = client.post("/api/auth/login", json={"email": "lin@example.com"})
        assert missing.status_code == 400
        assert missing.json()["error"]["code"] == "MISSING_CREDENTIALS"

        wrong = client.post("/api/auth/login", json={"email": "lin@example.com", "password": "nope1234"})
        assert wrong.status_code == 401
        assert wrong.json()["error"]["code"] == "INVALID_CREDENTIALS"

        db["user"].update_one({"email": "lin@example.com"}, {"$set": {"status": "suspended"}})
        inactive = client.post("/api/auth/login", json={"email": "lin@example.com", "password": "secret123"})
        assert inactive.status_code == 403
        assert inactive.json()["error"]["code"] == "ACCOUNT_INACTIVE"


class TestUserUpdates:
    """Update, profile, password and delete rules."""

    def test_update_self(self, client, register_user):
        account = register_user()
        uid = account["user"]["id"]
        resp = client.put(f"/api/users/{uid}", json={"name": "Renamed", "role": "investor"}, headers=account["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["name"] == "Renamed"
        assert data["title"] == "The Investor"

    def test_update_other_forbidden(self, client, register_user):
        alice, bob = register_user(), register_user()
        resp = client.put(f"/api/users/{bob['user']['id']}", json={"name": "Hacked"}, headers=alice["headers"])
        assert resp.status_code == 403

    def test_admin_can_update_status(self, client, register_user, make_admin):
        admin, target = make_admin(), register_user()
        resp = client.put(f"/api/users/{target['user']['id']}", json={"status": "suspended"}, headers=admin["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "suspended"

    def test_non_admin_cannot_change_status(self, client, register_user):
        account = register_user()
        resp = client.put(f"/api/users/{account['user']['id']}", json={"status": "inactive"}, headers=account["headers"])
        assert resp.status_code == 403

    def test_email_change_conflict(self, client, register_user):
        register_user(email="taken@example.com")
        account = register_user()
        resp = client.put(f"/api/users/{account['user']['id']}", json={"email": "TAKEN@example.com"},
                          headers=account["headers"])
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "EMAIL_EXISTS"

    def test_profile_merges_social_links(self, client, register_user):
        account = register_user(socialLinks={"github": "https://github.com/ada"})
        uid = account["user"]["id"]
        resp = client.put(f"/api/users/{uid}/profile", json={
            "socialLinks": {"linkedin": "https://linkedin.com/in/ada"},
            "skills": ["Python", {"name": "Rust", "level": "advanced"}],
            "experience": [{"title": "Engineer", "company": "ACME"}],
        }, headers=account["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["socialLinks"]["github"] == "https://github.com/ada"
        assert data["socialLinks"]["linkedin"] == "https://linkedin.com/in/ada"
        assert [s["name"] for s in data["skills"]] == ["Python", "Rust"]
        assert data["experiences"][0]["company"] == "ACME"

    def test_update_with_nulls_keeps_values(self, client, register_user):
        account = register_user(role="founder")
        uid = account["user"]["id"]
        resp = client.put(f"/api/users/{uid}", json={"role": None, "status": None, "name": None},
                          headers=account["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["role"] == "founder"
        assert data["status"] == "active"
        assert data["name"] == account["user"]["name"]

    def test_profile_with_nulls_keeps_values(self, client, register_user):
        account = register_user(socialLinks={"github": "https://github.com/ada"}, skills=["Python"])
        uid = account["user"]["id"]
        resp = client.put(f"/api/users/{uid}/profile", json={"skills": None, "socialLinks": None, "role": None},
                          headers=account["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [s["name"] for s in data["skills"]] == ["Python"]
        assert data["socialLinks"]["github"] == "https://github.com/ada"
        assert data["role"] == "user"

    def test_social_links_must_be_urls(self, client, register_user):
        account = register_user()
        resp = client.put(f"/api/users/{account['user']['id']}/profile", json={"socialLinks": {"github": "not a url"}},
                          headers=account["headers"])
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_change_password(self, client, register_user):
        account = register_user(email="pw@example.com")
        uid = account["user"]["id"]
        bad = client.put(f"/api/users/{uid}/password", json={
            "currentPassword": "wrong123", "newPassword": "newpass1", "confirmPassword": "newpass1",
        }, headers=account["headers"])
        assert bad.status_code == 401

        mismatch = client.put(f"/api/users/{uid}/password", json={
            "currentPassword": "secret123", "newPassword": "newpass1", "confirmPassword": "newpass2",
        }, headers=account["headers"])
        assert mismatch.json()["error"]["code"] == "PASSWORD_MISMATCH"

        ok = client.put(f"/api/users/{uid}/password", json={
            "currentPassword": "secret123", "newPassword": "newpass1", "confirmPassword": "newpass1",
        }, headers=account["headers"])
        assert ok.status_code == 200
        login = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "newpass1"})
        assert login.status_code == 200

    def test_delete_blocked_by_owned_projects(self, client, register_user, create_project):
        account = register_user()
        project = create_project(account["headers"])
        uid = account["user"]["id"]
        blocked = client.delete(f"/api/users/{uid}", headers=account["headers"])
        assert blocked.status_code == 400
        assert blocked.json()["error"]["code"] == "HAS_OWNED_PROJECTS"

        client.delete(f"/api/projects/{project['id']}", headers=account["headers"])
        assert client.delete(f"/api/users/{uid}", headers=account["headers"]).status_code == 200
        missing = client.get(f"/api/users/{uid}")
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "USER_NOT_FOUND"


class TestUserLookups:
    """Listing, search and skill matching."""

    def test_search_requires_two_chars(self, client):
        assert client.get("/api/users/search", params={"q": " a "}).status_code == 400

    def test_search_matches_name_or_email(self, client, register_user):
        register_user(name="Margaret Hamilton", email="mh@nasa.gov")
        register_user(name="Someone Else", email="else@example.com")
        data = client.get("/api/users/search", params={"q": "hamil"}).json()["data"]
        assert data["total"] == 1
        assert data["users"][0]["name"] == "Margaret Hamilton"
        assert "email" not in data["users"][0]

    @pytest.mark.parametrize("match_all,expected", [(False, 2), (True, 1)])
    def test_find_by_skills(self, client, register_user, match_all, expected):
        register_user(name="Both", skills=["Python", "Go"])
        register_user(name="Only Python", skills=["python"])
        register_user(name="Neither", skills=["Java"])
        resp = client.get("/api/users/by-skills", params={"skills": "PYTHON,go", "matchAll": match_all})
        assert len(resp.json()["data"]) == expected

    def test_find_by_skills_requires_skill(self, client):
        assert client.get("/api/users/by-skills", params={"skills": " , "}).status_code == 400

    def test_list_rejects_unknown_role(self, client):
        assert client.get("/api/users", params={"role": "wizard"}).status_code == 400

    def test_user_projects_split(self, client, register_user, create_project):
        owner, member = register_user(), register_user()
        project = create_project(owner["headers"])
        client.post(f"/api/projects/{project['id']}/members", json={"userId": member["user"]["id"], "role": "Designer"},
                    headers=owner["headers"])
        owned = client.get(f"/api/users/{owner['user']['id']}/projects").json()["data"]
        assert len(owned["ownedProjects"]) == 1
        assert owned["participatingProjects"] == []
        joined = client.get(f"/api/users/{member['user']['id']}/projects").json()["data"]
        assert joined["ownedProjects"] == []
        assert joined["participatingProjects"][0]["id"] == project["id"]
