"""End-to-end tests for the HTTP API through FastAPI's TestClient."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from cumulus.api import create_app
from cumulus.config import Settings
from cumulus.mail import ShareMailer
from cumulus.storage import BlobFetcher

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from cumulus.storage import LocalObjectStore

PASSWORD = "password123"
PDF = b"%PDF-1.4 test"


@pytest.fixture
def client(
    tmp_path: Path, store: LocalObjectStore, blob_transport: httpx.MockTransport
) -> Iterator[TestClient]:
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        jwt_secret="api-secret",
        frontend_url="http://drive.test",
    )
    fetcher = BlobFetcher(client=httpx.AsyncClient(transport=blob_transport))
    app = create_app(settings, store=store, fetcher=fetcher, mailer=ShareMailer())
    with TestClient(app) as test_client:
        yield test_client


def sign_up(client: TestClient, email: str, name: str | None = None) -> tuple[str, dict]:
    """Register *email*; return its user id and a bearer header."""
    resp = client.post(
        "/api/auth/signup", json={"email": email, "password": PASSWORD, "name": name}
    )
    assert resp.status_code == 201, resp.text
    client.cookies.clear()
    data = resp.json()["data"]
    return data["user"]["id"], {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
def alice(client: TestClient) -> dict:
    return sign_up(client, "alice@example.com", "Alice")[1]


@pytest.fixture
def bob(client: TestClient) -> tuple[str, dict]:
    return sign_up(client, "bob@example.com", "Bob")


def create_folder(client: TestClient, headers: dict, name: str, parent_id: str | None = None):
    resp = client.post("/api/folders", json={"name": name, "parentId": parent_id}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def upload(client: TestClient, headers: dict, name: str = "report.pdf", folder_id=None):
    form = {"folderId": folder_id} if folder_id else {}
    resp = client.post(
        "/api/files",
        files={"file": (name, PDF, "application/octet-stream")},
        data=form,
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def run_sql(client: TestClient, sql: str, params: dict | None = None):
    """Run *sql* against the app's database on the app's event loop."""
    return client.portal.call(client.app.state.ctx.database.execute, sql, params)


class TestAuth:
    def test_signup_sets_cookie(self, client: TestClient):
        resp = client.post(
            "/api/auth/signup", json={"email": "Carol@Example.com", "password": PASSWORD}
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "carol@example.com"
        assert "password_hash" not in body["data"]["user"]
        assert client.cookies.get("token") == body["data"]["token"]

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["data"]["user"]["email"] == "carol@example.com"

    def test_login_and_signout(self, client: TestClient, alice: dict):
        resp = client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 200
        assert client.get("/api/auth/me").status_code == 200

        client.post("/api/auth/signout")
        assert client.cookies.get("token") is None
        assert client.get("/api/auth/me").status_code == 401

    def test_wrong_password(self, client: TestClient, alice: dict):
        resp = client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"}
        )
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Invalid credentials"}

    def test_duplicate_signup(self, client: TestClient, alice: dict):
        resp = client.post(
            "/api/auth/signup", json={"email": "alice@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/folders"),
            ("get", "/api/files"),
            ("get", "/api/trash"),
            ("get", "/api/search?q=x"),
            ("get", "/api/shares/shared-with-me"),
        ],
    )
    def test_protected_routes_require_token(self, client: TestClient, method: str, path: str):
        resp = client.request(method, path)
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_garbage_bearer(self, client: TestClient):
        resp = client.get("/api/folders", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401


class TestUsers:
    def test_me(self, client: TestClient, alice: dict):
        resp = client.get("/api/users/me", headers=alice)
        assert resp.status_code == 200
        user = resp.json()["data"]["user"]
        assert (user["email"], user["name"], user["role"]) == ("alice@example.com", "Alice", "user")
        assert "password_hash" not in user

    def test_me_for_deleted_account(self, client: TestClient, alice: dict):
        run_sql(client, "DELETE FROM cumulus_users WHERE email = :email", {"email": "alice@example.com"})
        resp = client.get("/api/users/me", headers=alice)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Not found"

    def test_listing_requires_admin(self, client: TestClient, alice: dict):
        resp = client.get("/api/users", headers=alice)
        assert resp.status_code == 403
        assert resp.json()["success"] is False

    def test_admin_lists_users(self, client: TestClient, alice: dict, bob: tuple[str, dict]):
        run_sql(
            client,
            "UPDATE cumulus_users SET role = 'admin' WHERE email = :email",
            {"email": "alice@example.com"},
        )
        login = client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
        )
        client.cookies.clear()
        admin = {"Authorization": f"Bearer {login.json()['data']['token']}"}

        resp = client.get("/api/users", headers=admin)
        assert resp.status_code == 200, resp.text
        users = resp.json()["data"]["users"]
        assert {(u["email"], u["role"]) for u in users} == {
            ("alice@example.com", "admin"),
            ("bob@example.com", "user"),
        }
        assert all("password_hash" not in u for u in users)


class TestFolders:
    def test_create_and_list(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        assert docs["name"] == "Docs"
        assert docs["parent_id"] is None
        create_folder(client, alice, "Notes", docs["id"])

        root = client.get("/api/folders", headers=alice).json()["data"]
        assert [f["name"] for f in root] == ["Docs"]
        nested = client.get("/api/folders", params={"parentId": docs["id"]}, headers=alice)
        assert [f["name"] for f in nested.json()["data"]] == ["Notes"]
        assert client.get(f"/api/folders/{docs['id']}", headers=alice).status_code == 200

    def test_validation(self, client: TestClient, alice: dict):
        resp = client.post("/api/folders", json={"name": "  "}, headers=alice)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Folder name is required"

        assert client.get("/api/folders/not-a-uuid", headers=alice).status_code == 400
        assert client.get("/api/folders/42", headers=alice).status_code == 404
        assert client.get(f"/api/folders/{uuid.uuid4()}", headers=alice).status_code == 404
        assert client.post("/api/folders", json=[1, 2], headers=alice).status_code == 400

    def test_other_users_folders_are_invisible(
        self, client: TestClient, alice: dict, bob: tuple[str, dict]
    ):
        docs = create_folder(client, alice, "Docs")
        _, bob_headers = bob
        assert client.get("/api/folders", headers=bob_headers).json()["data"] == []
        assert client.get(f"/api/folders/{docs['id']}", headers=bob_headers).status_code == 404

    def test_rename_and_move(self, client: TestClient, alice: dict):
        a = create_folder(client, alice, "A")
        b = create_folder(client, alice, "B", a["id"])

        renamed = client.patch(
            f"/api/folders/{b['id']}/rename", json={"name": "Bee"}, headers=alice
        )
        assert renamed.json()["data"]["name"] == "Bee"

        cycle = client.patch(
            f"/api/folders/{a['id']}/move", json={"parentId": b["id"]}, headers=alice
        )
        assert cycle.status_code == 400

        to_root = client.patch(
            f"/api/folders/{b['id']}/move", json={"parentId": None}, headers=alice
        )
        assert to_root.status_code == 200
        assert to_root.json()["data"]["parent_id"] is None


class TestFiles:
    def test_upload_into_folder_and_list(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        record = upload(client, alice, folder_id=docs["id"])
        assert record["mime_type"] == "application/pdf"
        assert record["size"] == len(PDF)
        assert record["folder_id"] == docs["id"]

        listed = client.get("/api/files", params={"folderId": docs["id"]}, headers=alice)
        assert [f["name"] for f in listed.json()["data"]] == ["report.pdf"]
        assert client.get("/api/files", headers=alice).json()["data"] == []

    def test_upload_without_file(self, client: TestClient, alice: dict):
        resp = client.post("/api/files", data={"folderId": ""}, headers=alice)
        assert resp.status_code == 400
        assert resp.json()["message"] == "No file provided"

    def test_signed_url_downloads_blob(self, client: TestClient, alice: dict):
        record = upload(client, alice)
        resp = client.get(f"/api/files/{record['id']}/signed-url", headers=alice)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["expiresIn"] == 60
        assert data["file"]["id"] == record["id"]

        parts = urlsplit(data["url"])
        download = client.get(f"{parts.path}?{parts.query}")
        assert download.status_code == 200
        assert download.content == PDF
        assert download.headers["content-type"] == "application/pdf"

        tampered = client.get(f"{parts.path}?{parts.query[:-4]}beef")
        assert tampered.status_code == 403

    def test_signed_url_for_someone_elses_file(
        self, client: TestClient, alice: dict, bob: tuple[str, dict]
    ):
        record = upload(client, alice)
        resp = client.get(f"/api/files/{record['id']}/signed-url", headers=bob[1])
        assert resp.status_code == 403

    def test_rename_move_copy(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        record = upload(client, alice)

        renamed = client.patch(
            f"/api/files/{record['id']}/rename", json={"name": "final.pdf"}, headers=alice
        )
        assert renamed.json()["data"]["name"] == "final.pdf"

        moved = client.patch(
            f"/api/files/{record['id']}/move", json={"folderId": docs["id"]}, headers=alice
        )
        assert moved.json()["data"]["folder_id"] == docs["id"]

        copied = client.post(f"/api/files/{record['id']}/copy", headers=alice)
        assert copied.status_code == 201
        copy = copied.json()["data"]
        assert copy["name"] == "final (copy).pdf"
        assert copy["size"] == len(PDF)
        assert copy["folder_id"] == docs["id"]
        assert copy["storage_path"] != record["storage_path"]

        to_root = client.post(
            f"/api/files/{record['id']}/copy", json={"folderId": None}, headers=alice
        )
        assert to_root.json()["data"]["folder_id"] == docs["id"]


class TestTrash:
    def test_delete_restore_purge(self, client: TestClient, alice: dict, store: LocalObjectStore):
        docs = create_folder(client, alice, "Docs")
        record = upload(client, alice)

        assert client.delete(f"/api/folders/{docs['id']}", headers=alice).status_code == 200
        assert client.delete(f"/api/files/{record['id']}", headers=alice).status_code == 200
        assert client.get("/api/folders", headers=alice).json()["data"] == []

        trash = client.get("/api/trash", headers=alice).json()["data"]
        assert [f["id"] for f in trash["folders"]] == [docs["id"]]
        assert [f["id"] for f in trash["files"]] == [record["id"]]

        restored = client.post(
            "/api/trash/restore", json={"type": "folder", "id": docs["id"]}, headers=alice
        )
        assert restored.status_code == 200
        assert restored.json()["data"]["type"] == "folder"
        assert restored.json()["data"]["item"]["is_deleted"] is False
        assert [f["name"] for f in client.get("/api/folders", headers=alice).json()["data"]] == [
            "Docs"
        ]

        purged = client.delete(
            f"/api/trash/{record['id']}", params={"type": "file"}, headers=alice
        )
        assert purged.status_code == 200
        effects = purged.json()["data"]["sideEffects"]
        assert [(e["name"], e["ok"]) for e in effects] == [("blob_remove", True)]
        assert not (store.bucket_dir / record["storage_path"]).exists()

        trash = client.get("/api/trash", headers=alice).json()["data"]
        assert trash == {"folders": [], "files": []}

    def test_restore_requires_type(self, client: TestClient, alice: dict):
        resp = client.post("/api/trash/restore", json={"id": str(uuid.uuid4())}, headers=alice)
        assert resp.status_code == 400

    def test_purge_live_item(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        resp = client.delete(f"/api/trash/{docs['id']}", params={"type": "folder"}, headers=alice)
        assert resp.status_code == 404


class TestSearch:
    def test_search(self, client: TestClient, alice: dict):
        create_folder(client, alice, "Reports")
        upload(client, alice, "Q1 Report.pdf")
        upload(client, alice, "photo.jpg")

        data = client.get("/api/search", params={"q": "report"}, headers=alice).json()["data"]
        assert [f["name"] for f in data["folders"]] == ["Reports"]
        assert [f["name"] for f in data["files"]] == ["Q1 Report.pdf"]

        empty = client.get("/api/search", params={"q": "  "}, headers=alice).json()["data"]
        assert empty == {"folders": [], "files": []}


class TestShares:
    def test_share_by_email_with_registered_user(
        self, client: TestClient, alice: dict, bob: tuple[str, dict]
    ):
        record = upload(client, alice)
        resp = client.post(
            "/api/shares/email",
            json={
                "resourceType": "file",
                "resourceId": record["id"],
                "recipientEmails": ["Bob@Example.com"],
                "role": "editor",
            },
            headers=alice,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["role"] == "editor"
        (outcome,) = data["results"]
        assert outcome["success"] is True
        assert outcome["email"] == "bob@example.com"
        assert outcome["share_link"] == f"http://drive.test/share/{outcome['link_token']}"
        assert outcome["email_sent"] is False
        effects = {e["name"]: e for e in outcome["side_effects"]}
        assert effects["share_grant"]["ok"] is True
        assert effects["email"] == {"name": "email", "ok": True, "detail": "logged"}

        bob_id, bob_headers = bob
        shared = client.get("/api/shares/shared-with-me", headers=bob_headers).json()["data"]
        assert [(g["resource_id"], g["role"]) for g in shared] == [(record["id"], "editor")]
        assert shared[0]["target_user_id"] == bob_id

        link = client.get(f"/api/shares/link/{outcome['link_token']}")
        assert link.status_code == 200
        assert link.json()["data"]["resource_id"] == record["id"]

    def test_link_insert_failure_still_returns_token(
        self, client: TestClient, alice: dict, bob: tuple[str, dict]
    ):
        run_sql(
            client,
            "CREATE TRIGGER reject_links BEFORE INSERT ON cumulus_public_links "
            "BEGIN SELECT RAISE(ABORT, 'disk I/O error'); END",
        )
        record = upload(client, alice)
        resp = client.post(
            "/api/shares/email",
            json={
                "resourceType": "file",
                "resourceId": record["id"],
                "recipientEmails": ["bob@example.com"],
                "role": "editor",
            },
            headers=alice,
        )
        assert resp.status_code == 201, resp.text
        (outcome,) = resp.json()["data"]["results"]
        assert outcome["success"] is True
        assert outcome["link_token"]
        effects = {e["name"]: e for e in outcome["side_effects"]}
        assert effects["link_persist"]["ok"] is False
        assert "disk I/O error" in effects["link_persist"]["detail"]
        assert effects["share_grant"]["ok"] is True

        _, bob_headers = bob
        shared = client.get("/api/shares/shared-with-me", headers=bob_headers).json()["data"]
        assert [(g["resource_id"], g["role"]) for g in shared] == [(record["id"], "editor")]
        assert client.get(f"/api/shares/link/{outcome['link_token']}").status_code == 404

    def test_partial_failure_is_207(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        resp = client.post(
            "/api/shares/email",
            json={
                "resourceType": "folder",
                "resourceId": docs["id"],
                "recipientEmails": ["dana@example.com", "not-an-email"],
                "role": "owner",
            },
            headers=alice,
        )
        assert resp.status_code == 207
        data = resp.json()["data"]
        assert data["role"] == "viewer"
        first, second = data["results"]
        assert first["success"] is True
        assert second["success"] is False
        assert "email" in second["error"]

    def test_email_share_requires_owner(
        self, client: TestClient, alice: dict, bob: tuple[str, dict]
    ):
        record = upload(client, alice)
        resp = client.post(
            "/api/shares/email",
            json={
                "resourceType": "file",
                "resourceId": record["id"],
                "recipientEmails": ["bob@example.com"],
            },
            headers=bob[1],
        )
        assert resp.status_code == 403

    def test_email_share_requires_recipients(self, client: TestClient, alice: dict):
        record = upload(client, alice)
        resp = client.post(
            "/api/shares/email",
            json={"resourceType": "file", "resourceId": record["id"], "recipientEmails": [" "]},
            headers=alice,
        )
        assert resp.status_code == 400

    def test_grant_list_revoke(self, client: TestClient, alice: dict, bob: tuple[str, dict]):
        bob_id, _ = bob
        docs = create_folder(client, alice, "Docs")
        target = {"resourceType": "folder", "resourceId": docs["id"], "targetUserId": bob_id}

        granted = client.post("/api/shares", json={**target, "role": "viewer"}, headers=alice)
        assert granted.status_code == 201
        assert granted.json()["data"]["role"] == "viewer"

        params = {"resourceType": "folder", "resourceId": docs["id"]}
        grants = client.get("/api/shares", params=params, headers=alice).json()["data"]
        assert [g["target_user_id"] for g in grants] == [bob_id]

        revoked = client.post("/api/shares/revoke", json=target, headers=alice)
        assert revoked.status_code == 200
        assert client.get("/api/shares", params=params, headers=alice).json()["data"] == []

    def test_grant_to_unknown_user(self, client: TestClient, alice: dict):
        docs = create_folder(client, alice, "Docs")
        resp = client.post(
            "/api/shares",
            json={
                "resourceType": "folder",
                "resourceId": docs["id"],
                "targetUserId": str(uuid.uuid4()),
            },
            headers=alice,
        )
        assert resp.status_code == 404

    def test_public_link(self, client: TestClient, alice: dict):
        record = upload(client, alice)
        resp = client.post(
            "/api/shares/link",
            json={"resourceType": "file", "resourceId": record["id"]},
            headers=alice,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["persisted"] is True
        assert data["expiresAt"] is None
        assert data["url"] == f"http://drive.test/share/{data['token']}"

        assert client.get(f"/api/shares/link/{data['token']}").status_code == 200
        assert client.get("/api/shares/link/unknown-token").status_code == 404


class TestHealth:
    def test_health(self, client: TestClient):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "status": "ok",
            "database": True,
            "capabilities": {"soft_delete": True, "public_links": True},
        }
