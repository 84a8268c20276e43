"""
Name: Authorization HTTP API Tests

Responsibilities:
  - Flujos completos vía HTTP (nodos, grants, invitaciones, share links)
  - Contrato de errores RFC 7807 (application/problem+json)
  - Identidad vía headers del gateway (X-User-Id / X-Org-Id / X-Org-Admin)

Notes:
  - get_services se reemplaza por el grafo in-memory del fixture (reloj fijo)
  - Sin lifespan: el backend memory no necesita pool
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from workspace_authz.api.main import create_app
from workspace_authz.container import get_services
from workspace_authz.crosscutting.config import Settings

pytestmark = pytest.mark.unit

ADMIN = {"X-User-Id": "alice", "X-Org-Id": "org-a", "X-Org-Admin": "true"}
MEMBER = {"X-User-Id": "bob", "X-Org-Id": "org-a"}
CAROL = {"X-User-Id": "carol", "X-Org-Id": "org-a", "X-User-Email": "carol@example.com"}
OUTSIDER = {"X-User-Id": "mallory", "X-Org-Id": "org-b"}


@pytest.fixture
def client(services):
    app = create_app(Settings(repository_backend="memory", log_json=False))
    app.dependency_overrides[get_services] = lambda: services
    return TestClient(app)


def _create_folder(client, headers=ADMIN, **body):
    body.setdefault("type", "folder")
    body.setdefault("org_id", headers.get("X-Org-Id"))
    response = client.post("/v1/nodes", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _assert_problem(response, status: int, code: str):
    assert response.status_code == status, response.text
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["status"] == status
    assert body["code"] == code
    assert body["type"] == f"about:blank/{code.lower()}"
    return body


class TestNodes:
    def test_create_org_folder(self, client):
        folder = _create_folder(client, title="Team")

        assert folder["org_id"] == "org-a"
        assert folder["owner_id"] is None
        assert folder["ancestor_ids"] == []

    def test_create_personal_folder_without_org(self, client):
        response = client.post(
            "/v1/nodes", json={"type": "folder", "title": "Mine"}, headers=MEMBER
        )

        assert response.status_code == 201
        assert response.json()["owner_id"] == "bob"
        assert response.json()["org_id"] is None

    def test_child_inherits_path(self, client):
        parent = _create_folder(client)
        child = client.post(
            "/v1/nodes",
            json={"type": "document", "title": "notes", "parent_id": parent["id"]},
            headers=ADMIN,
        ).json()

        assert child["ancestor_ids"] == [parent["id"]]
        assert child["org_id"] == "org-a"

    def test_create_in_other_org_forbidden(self, client):
        response = client.post(
            "/v1/nodes", json={"type": "folder", "org_id": "org-b"}, headers=MEMBER
        )

        _assert_problem(response, 403, "NOT_AUTHORIZED")

    def test_open_folder_visible_to_org_member(self, client):
        folder = _create_folder(client)

        response = client.get(f"/v1/nodes/{folder['id']}", headers=MEMBER)

        assert response.status_code == 200
        assert response.json()["id"] == folder["id"]

    def test_hidden_node_looks_missing(self, client):
        folder = _create_folder(client)

        response = client.get(f"/v1/nodes/{folder['id']}", headers=OUTSIDER)

        _assert_problem(response, 404, "NODE_NOT_FOUND")

    def test_restrict_then_member_loses_access(self, client):
        folder = _create_folder(client)

        restricted = client.put(
            f"/v1/folders/{folder['id']}/restricted",
            json={"is_restricted": True},
            headers=ADMIN,
        )
        hidden = client.get(f"/v1/nodes/{folder['id']}", headers=MEMBER)

        assert restricted.status_code == 200
        assert restricted.json()["is_restricted"] is True
        _assert_problem(hidden, 404, "NODE_NOT_FOUND")

    def test_member_cannot_restrict(self, client):
        folder = _create_folder(client)

        response = client.put(
            f"/v1/folders/{folder['id']}/restricted",
            json={"is_restricted": True},
            headers=MEMBER,
        )

        _assert_problem(response, 403, "NOT_AUTHORIZED")

    def test_move_updates_ancestor_ids(self, client):
        a = _create_folder(client, title="a")
        b = _create_folder(client, title="b")

        response = client.post(
            f"/v1/nodes/{b['id']}/move", json={"parent_id": a["id"]}, headers=ADMIN
        )

        assert response.status_code == 200
        assert response.json()["parent_id"] == a["id"]
        assert response.json()["ancestor_ids"] == [a["id"]]

    def test_move_into_own_descendant_rejected(self, client):
        a = _create_folder(client)
        child = client.post(
            "/v1/nodes", json={"type": "folder", "parent_id": a["id"]}, headers=ADMIN
        ).json()

        response = client.post(
            f"/v1/nodes/{a['id']}/move", json={"parent_id": child["id"]}, headers=ADMIN
        )

        _assert_problem(response, 400, "INVALID_REQUEST")

    def test_delete_marks_subtree(self, client):
        a = _create_folder(client)
        client.post(
            "/v1/nodes", json={"type": "document", "parent_id": a["id"]}, headers=ADMIN
        )

        response = client.delete(f"/v1/nodes/{a['id']}", headers=ADMIN)
        after = client.get(f"/v1/nodes/{a['id']}", headers=ADMIN)

        assert response.json()["deleted_count"] == 2
        _assert_problem(after, 404, "NODE_NOT_FOUND")

    def test_root_restricted_folder(self, client):
        root = _create_folder(client, is_restricted=True)
        child = client.post(
            "/v1/nodes", json={"type": "folder", "parent_id": root["id"]}, headers=ADMIN
        ).json()

        response = client.get(f"/v1/nodes/{child['id']}/root-restricted", headers=ADMIN)

        assert response.json()["root_restricted_folder_id"] == root["id"]


class TestAccessEndpoint:
    def test_org_admin_access(self, client):
        folder = _create_folder(client)

        body = client.get(f"/v1/nodes/{folder['id']}/access", headers=ADMIN).json()

        assert body["has_access"] is True
        assert body["role"] == "org_admin"
        assert body["is_org_admin"] is True

    def test_anonymous_has_no_access(self, client):
        folder = _create_folder(client)

        response = client.get(f"/v1/nodes/{folder['id']}/access")

        assert response.status_code == 200
        assert response.json()["has_access"] is False
        assert response.json()["role"] is None

    def test_missing_node_same_as_no_access(self, client):
        response = client.get(f"/v1/nodes/{uuid4()}/access", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["has_access"] is False

    def test_inherited_grant_reports_source(self, client):
        root = _create_folder(client, is_restricted=True)
        child = client.post(
            "/v1/nodes",
            json={"type": "folder", "parent_id": root["id"], "is_restricted": True},
            headers=ADMIN,
        ).json()
        client.put(
            f"/v1/folders/{root['id']}/grants/bob", json={"role": "editor"}, headers=ADMIN
        )

        body = client.get(f"/v1/nodes/{child['id']}/access", headers=MEMBER).json()

        assert body["has_access"] is True
        assert body["role"] == "editor"
        assert body["inherited_from"] == root["id"]


class TestGrants:
    def test_grant_list_and_revoke(self, client):
        folder = _create_folder(client, is_restricted=True)
        path = f"/v1/folders/{folder['id']}/grants/bob"

        granted = client.put(path, json={"role": "viewer"}, headers=ADMIN)
        visible = client.get(f"/v1/nodes/{folder['id']}", headers=MEMBER)
        listed = client.get(f"/v1/folders/{folder['id']}/grants", headers=ADMIN)
        accessible = client.get("/v1/folders/accessible", headers=MEMBER)

        assert granted.status_code == 200
        assert granted.json()["role"] == "viewer"
        assert granted.json()["granted_by"] == "alice"
        assert visible.status_code == 200
        assert [g["user_id"] for g in listed.json()["grants"]] == ["bob"]
        assert accessible.json()["folder_ids"] == [folder["id"]]

        assert client.delete(path, headers=ADMIN).status_code == 204
        assert client.delete(path, headers=ADMIN).status_code == 204
        _assert_problem(client.get(path, headers=ADMIN), 404, "GRANT_NOT_FOUND")

    def test_update_role(self, client):
        folder = _create_folder(client)
        path = f"/v1/folders/{folder['id']}/grants/bob"
        client.put(path, json={"role": "viewer"}, headers=ADMIN)

        response = client.patch(path, json={"role": "admin"}, headers=ADMIN)

        assert response.json()["role"] == "admin"

    def test_owner_is_not_grantable(self, client):
        folder = _create_folder(client)

        response = client.put(
            f"/v1/folders/{folder['id']}/grants/bob", json={"role": "owner"}, headers=ADMIN
        )

        _assert_problem(response, 400, "INVALID_REQUEST")

    def test_missing_identity_is_401(self, client):
        response = client.get("/v1/folders/accessible")

        body = _assert_problem(response, 401, "NOT_AUTHENTICATED")
        assert body["title"] == "Unauthorized"
        assert any("error_id" in e for e in body["errors"])
        assert any("request_id" in e for e in body["errors"])

    def test_request_id_is_echoed_in_errors(self, client):
        response = client.get(
            "/v1/folders/accessible", headers={"X-Request-Id": "req-123"}
        )

        assert response.headers["X-Request-Id"] == "req-123"
        assert "req-123" in [e.get("request_id") for e in response.json()["errors"]]


class TestInvitations:
    def _invite(self, client, folder_id, email="Carol@Example.com", **body):
        response = client.post(
            f"/v1/folders/{folder_id}/invitations",
            json={"email": email, "role": "editor", **body},
            headers=ADMIN,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_create_and_accept(self, client):
        folder = _create_folder(client)
        created = self._invite(client, folder["id"])
        token = created["invitation"]["token"]

        public = client.get(f"/v1/invitations/{token}")
        accepted = client.post(f"/v1/invitations/{token}/accept", headers=CAROL)
        folder_after = client.get(f"/v1/nodes/{folder['id']}", headers=ADMIN).json()

        assert created["is_existing"] is False
        assert created["invitation"]["email"] == "carol@example.com"
        assert public.json()["status"] == "pending"
        assert public.json()["token"] is None
        assert accepted.status_code == 200
        assert accepted.json()["effective_role"] == "editor"
        assert accepted.json()["grant_changed"] is True
        assert folder_after["is_restricted"] is True

    def test_reinvite_keeps_token(self, client):
        folder = _create_folder(client)
        first = self._invite(client, folder["id"])
        second = self._invite(client, folder["id"], role="viewer")

        assert second["is_existing"] is True
        assert second["invitation"]["token"] == first["invitation"]["token"]
        assert second["invitation"]["role"] == "viewer"

    def test_accept_twice_is_conflict(self, client):
        folder = _create_folder(client)
        token = self._invite(client, folder["id"])["invitation"]["token"]
        client.post(f"/v1/invitations/{token}/accept", headers=CAROL)

        response = client.post(f"/v1/invitations/{token}/accept", headers=CAROL)

        _assert_problem(response, 409, "INVITATION_ALREADY_ACCEPTED")

    def test_decline_twice_is_conflict(self, client):
        folder = _create_folder(client)
        token = self._invite(client, folder["id"])["invitation"]["token"]

        first = client.post(f"/v1/invitations/{token}/decline", headers=CAROL)
        second = client.post(f"/v1/invitations/{token}/decline", headers=CAROL)

        assert first.json()["status"] == "declined"
        _assert_problem(second, 409, "INVITATION_ALREADY_DECLINED")

    def test_expired_invitation_is_gone(self, client, clock):
        folder = _create_folder(client)
        token = self._invite(client, folder["id"], expires_in_days=1)["invitation"][
            "token"
        ]
        clock.advance(days=2)

        response = client.post(f"/v1/invitations/{token}/accept", headers=CAROL)
        public = client.get(f"/v1/invitations/{token}")

        _assert_problem(response, 410, "INVITATION_EXPIRED")
        assert public.json()["status"] == "expired"

    def test_unknown_token_is_404(self, client):
        response = client.get("/v1/invitations/does-not-exist")

        _assert_problem(response, 404, "INVITATION_NOT_FOUND")

    def test_received_uses_email_header(self, client):
        folder = _create_folder(client)
        self._invite(client, folder["id"])

        received = client.get("/v1/invitations/received", headers=CAROL)
        sent = client.get("/v1/invitations/sent?status=pending", headers=ADMIN)

        assert len(received.json()["invitations"]) == 1
        assert received.json()["invitations"][0]["email"] == "carol@example.com"
        assert len(sent.json()["invitations"]) == 1

    def test_member_cannot_invite(self, client):
        folder = _create_folder(client)

        response = client.post(
            f"/v1/folders/{folder['id']}/invitations",
            json={"email": "x@example.com", "role": "viewer"},
            headers=MEMBER,
        )

        _assert_problem(response, 403, "NOT_AUTHORIZED")

    def test_revoke_removes_invitation(self, client):
        folder = _create_folder(client)
        created = self._invite(client, folder["id"])["invitation"]

        response = client.delete(f"/v1/invitations/by-id/{created['id']}", headers=ADMIN)

        assert response.status_code == 204
        _assert_problem(
            client.get(f"/v1/invitations/{created['token']}"), 404, "INVITATION_NOT_FOUND"
        )


class TestShareLinks:
    def _create_link(self, client, folder_id, **body):
        response = client.post(
            f"/v1/folders/{folder_id}/share-links",
            json={"role": "viewer", **body},
            headers=ADMIN,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_use_until_exhausted(self, client):
        folder = _create_folder(client)
        link = self._create_link(client, folder["id"], max_uses=1)

        used = client.post(f"/v1/share-links/{link['token']}/use", headers=MEMBER)
        exhausted = client.post(f"/v1/share-links/{link['token']}/use", headers=CAROL)
        public = client.get(f"/v1/share-links/{link['token']}")

        assert used.status_code == 200
        assert used.json()["effective_role"] == "viewer"
        _assert_problem(exhausted, 410, "SHARE_LINK_EXHAUSTED")
        assert public.json()["use_count"] == 1
        assert public.json()["is_usable"] is False
        assert public.json()["token"] is None

    def test_disabled_link(self, client):
        folder = _create_folder(client)
        link = self._create_link(client, folder["id"])

        off = client.post(f"/v1/share-links/by-id/{link['id']}/deactivate", headers=ADMIN)
        response = client.post(f"/v1/share-links/{link['token']}/use", headers=MEMBER)

        assert off.json()["is_active"] is False
        _assert_problem(response, 410, "SHARE_LINK_DISABLED")

    def test_admin_role_not_allowed_for_links(self, client):
        folder = _create_folder(client)

        response = client.post(
            f"/v1/folders/{folder['id']}/share-links",
            json={"role": "admin"},
            headers=ADMIN,
        )

        _assert_problem(response, 400, "INVALID_REQUEST")

    def test_list_and_delete(self, client):
        folder = _create_folder(client)
        link = self._create_link(client, folder["id"])

        listed = client.get(f"/v1/folders/{folder['id']}/share-links", headers=ADMIN)
        deleted = client.delete(f"/v1/share-links/by-id/{link['id']}", headers=ADMIN)

        assert [item["id"] for item in listed.json()["share_links"]] == [link["id"]]
        assert deleted.status_code == 204
        _assert_problem(
            client.get(f"/v1/share-links/{link['token']}"), 404, "SHARE_LINK_NOT_FOUND"
        )


class TestOperationalEndpoints:
    def test_healthz(self, client):
        body = client.get("/healthz").json()

        assert body["ok"] is True
        assert body["backend"] == "memory"
        assert body["storage"] == "connected"

    def test_metrics_exposed(self, client):
        folder = _create_folder(client)
        client.get(f"/v1/nodes/{folder['id']}/access", headers=ADMIN)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "authz_access_checks_total" in response.text

    def test_metrics_disabled(self, services):
        app = create_app(
            Settings(repository_backend="memory", log_json=False, metrics_enabled=False)
        )

        assert TestClient(app).get("/metrics").status_code == 404
