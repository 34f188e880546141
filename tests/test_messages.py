"""Project chat: membership gating, replies, reactions and soft deletes."""
import pytest


@pytest.fixture
def team(client, register_user, create_project):
    owner, member, outsider = register_user(name="Owner"), register_user(name="Member"), register_user(name="Outsider")
    project = create_project(owner["headers"])
    client.post(f"/api/projects/{project['id']}/members", json={"userId": member["user"]["id"]}, headers=owner["headers"])
    return owner, member, outsider, project


def _post(client, project_id, headers, content="hello", **extra):
    return client.post(f"/api/projects/{project_id}/messages", json={"content": content, **extra}, headers=headers)


class TestPosting:

    def test_members_post_and_read_in_order(self, client, team):
        owner, member, _, project = team
        assert _post(client, project["id"], owner["headers"], "first").status_code == 201
        assert _post(client, project["id"], member["headers"], "second").status_code == 201
        listing = client.get(f"/api/projects/{project['id']}/messages", headers=member["headers"]).json()["data"]
        assert [m["content"] for m in listing] == ["first", "second"]
        assert listing[1]["senderName"] == "Member"

    def test_limit_returns_newest(self, client, team):
        owner, _, _, project = team
        for i in range(5):
            _post(client, project["id"], owner["headers"], f"msg {i}")
        listing = client.get(f"/api/projects/{project['id']}/messages", params={"limit": 2},
                             headers=owner["headers"]).json()["data"]
        assert [m["content"] for m in listing] == ["msg 3", "msg 4"]

    def test_outsider_blocked(self, client, team):
        _, _, outsider, project = team
        assert _post(client, project["id"], outsider["headers"]).status_code == 403
        assert client.get(f"/api/projects/{project['id']}/messages", headers=outsider["headers"]).status_code == 403

    def test_content_and_type_validated(self, client, team):
        owner, _, _, project = team
        assert _post(client, project["id"], owner["headers"], "   ").status_code == 400
        assert _post(client, project["id"], owner["headers"], "x" * 2001).status_code == 400
        assert _post(client, project["id"], owner["headers"], "ok", type="video").status_code == 400

    def test_reply_must_be_same_project(self, client, team, create_project):
        owner, _, _, project = team
        other = create_project(owner["headers"])
        foreign = _post(client, other["id"], owner["headers"], "elsewhere").json()["data"]
        local = _post(client, project["id"], owner["headers"], "root").json()["data"]
        assert _post(client, project["id"], owner["headers"], "reply", replyTo=local["id"]).status_code == 201
        assert _post(client, project["id"], owner["headers"], "reply", replyTo=foreign["id"]).status_code == 400


class TestReactionsAndDeletes:

    def test_reaction_toggles(self, client, team):
        owner, member, _, project = team
        message = _post(client, project["id"], owner["headers"]).json()["data"]
        url = f"/api/messages/{message['id']}/reactions"
        added = client.post(url, json={"emoji": "👍"}, headers=member["headers"]).json()["data"]
        assert [(r["userId"], r["emoji"]) for r in added["reactions"]] == [(member["user"]["id"], "👍")]
        removed = client.post(url, json={"emoji": "👍"}, headers=member["headers"]).json()["data"]
        assert removed["reactions"] == []

    def test_sender_or_owner_deletes(self, client, team):
        owner, member, _, project = team
        by_member = _post(client, project["id"], member["headers"], "from member").json()["data"]
        by_owner = _post(client, project["id"], owner["headers"], "from owner").json()["data"]

        assert client.delete(f"/api/messages/{by_owner['id']}", headers=member["headers"]).status_code == 403
        assert client.delete(f"/api/messages/{by_member['id']}", headers=owner["headers"]).status_code == 200

        listing = client.get(f"/api/projects/{project['id']}/messages", headers=owner["headers"]).json()["data"]
        assert [m["id"] for m in listing] == [by_owner["id"]]
        assert client.delete(f"/api/messages/{by_member['id']}", headers=owner["headers"]).status_code == 404
