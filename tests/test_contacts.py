"""Contact form submission and the admin-only management endpoints."""
import pytest

VALID = {"name": "Jane Doe", "email": "Jane@Example.com", "message": "I would like to know more about the platform."}


class TestSubmission:

    def test_submit_public(self, client):
        resp = client.post("/api/contact", json=VALID)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["id"]

    def test_submit_collects_errors(self, client):
        resp = client.post("/api/contact", json={"name": "J", "email": "bad", "message": "short"})
        assert resp.status_code == 400
        assert len(resp.json()["error"]["details"]) == 3

    @pytest.mark.parametrize("email", ["bob@example..com", "bob@@example.com", "bob@example", "bob example@x.com"])
    def test_rejects_malformed_email(self, client, email):
        resp = client.post("/api/contact", json={**VALID, "email": email})
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == ["Invalid email format"]


class TestAdminEndpoints:

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/api/contact").status_code == 401
        forbidden = client.get("/api/contact", headers=auth_headers)
        assert forbidden.status_code == 403
        assert forbidden.json()["error"]["code"] == "ROLE_REQUIRED"

    def test_list_update_delete(self, client, make_admin):
        admin = make_admin()
        ids = [client.post("/api/contact", json=VALID).json()["data"]["id"] for _ in range(3)]

        listing = client.get("/api/contact", headers=admin["headers"]).json()
        assert listing["pagination"]["totalItems"] == 3

        updated = client.patch(f"/api/contact/{ids[0]}/status", json={"status": "responded"}, headers=admin["headers"])
        assert updated.json()["data"]["status"] == "responded"
        # any status may follow any other
        back = client.patch(f"/api/contact/{ids[0]}", json={"status": "pending"}, headers=admin["headers"])
        assert back.status_code == 200
        invalid = client.patch(f"/api/contact/{ids[0]}", json={"status": "spam"}, headers=admin["headers"])
        assert invalid.status_code == 400

        client.patch(f"/api/contact/{ids[1]}", json={"status": "responded"}, headers=admin["headers"])
        only = client.get("/api/contact", params={"status": "responded"}, headers=admin["headers"]).json()
        assert [c["id"] for c in only["data"]] == [ids[1]]

        assert client.delete(f"/api/contact/{ids[2]}", headers=admin["headers"]).status_code == 200
        assert client.get(f"/api/contact/{ids[2]}", headers=admin["headers"]).status_code == 404

    def test_statistics(self, client, make_admin):
        admin = make_admin()
        empty = client.get("/api/contact/stats", headers=admin["headers"]).json()["data"]
        assert empty["total"] == 0
        assert empty["pendingRate"] == 0

        ids = [client.post("/api/contact", json=VALID).json()["data"]["id"] for _ in range(3)]
        client.patch(f"/api/contact/{ids[0]}", json={"status": "responded"}, headers=admin["headers"])
        stats = client.get("/api/contact/stats", headers=admin["headers"]).json()["data"]
        assert stats["total"] == 3
        assert stats["byStatus"]["pending"] == 2
        assert stats["pendingRate"] == 66.7
        assert stats["responseRate"] == 33.3
