"""
API tests for the HTTP surface.

Each test gets a fresh application wired to in-memory backends (see
conftest.py), so requests go through routing, dependency injection,
validation and error handling exactly as in production.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from src.api import dependencies
from src.api.dependencies import get_feed_service, get_storage_client, get_upload_policy
from src.config.settings import get_settings
from src.core.media.models import Role
from src.core.media.policy import UploadPolicy
from src.infrastructure.storage.client import MockStorageClient


def signup_and_login(client, email="ana@example.com", role="user", password="s3cret"):
    response = client.post(
        "/api/auth/signup",
        json={"username": email.split("@")[0], "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def upload_video(client, token, title="Intro", filename="clip.mp4", content_type="video/mp4"):
    return client.post(
        "/api/videos/upload",
        headers=auth(token),
        files={"video": (filename, b"frames", content_type)},
        data={"title": title, "hashtags": "#swim"},
    )


class TestAuthEndpoints:
    def test_signup_returns_user_without_password(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"username": "ana", "email": "ana@example.com", "password": "s3cret"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "ana@example.com"
        assert body["role"] == "user"
        assert "password" not in body
        assert "passwordHash" not in body

    def test_duplicate_email_is_refused(self, client):
        signup_and_login(client)

        response = client.post(
            "/api/auth/signup",
            json={"username": "again", "email": "ANA@example.com", "password": "x"},
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Email is already registered"}

    def test_wrong_password(self, client):
        signup_and_login(client)

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid credentials"}

    def test_unknown_email_gets_same_error(self, client):
        response = client.post("/api/auth/login", json={"email": "who@example.com", "password": "x"})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid credentials"}

    def test_invalid_signup_body_is_400(self, client):
        response = client.post("/api/auth/signup", json={"username": "ana", "email": "not-an-email"})

        assert response.status_code == 400
        assert "message" in response.json()

    def test_profile_requires_token(self, client):
        response = client.get("/api/auth/profile")

        assert response.status_code == 401
        assert response.json() == {"message": "Unauthorized"}

    def test_profile_rejects_bad_token(self, client):
        response = client.get("/api/auth/profile", headers=auth("garbage"))

        assert response.status_code == 403
        assert response.json() == {"message": "Invalid token"}

    def test_profile_returns_current_user(self, client):
        token = signup_and_login(client)

        response = client.get("/api/auth/profile", headers=auth(token))

        assert response.status_code == 200
        assert response.json()["username"] == "ana"

    def test_profile_of_deleted_user_is_404(self, client, tokens):
        token = tokens.issue_token(str(ObjectId()), Role.USER)

        response = client.get("/api/auth/profile", headers=auth(token))

        assert response.status_code == 404

    def test_update_profile_fields(self, client):
        token = signup_and_login(client)

        response = client.put("/api/auth/update", headers=auth(token), data={"bio": "Swims daily"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["bio"] == "Swims daily"
        assert body["user"]["username"] == "ana"
        assert body["file"] is None

    def test_update_profile_with_avatar(self, client, storage):
        token = signup_and_login(client)

        response = client.put(
            "/api/auth/update",
            headers=auth(token),
            files={"file": ("me.png", b"png-bytes", "image/png")},
            data={"location": "Lisbon"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["avatarUrl"] == body["file"]["url"]
        assert body["user"]["location"] == "Lisbon"
        assert storage.has_object(body["file"]["blobName"])

    def test_update_to_taken_email(self, client):
        signup_and_login(client, email="bob@example.com")
        token = signup_and_login(client)

        response = client.put("/api/auth/update", headers=auth(token), data={"email": "bob@example.com"})

        assert response.status_code == 400
        assert response.json() == {"message": "Email is already registered"}

    def test_taken_email_with_avatar_uploads_nothing(self, client, storage):
        signup_and_login(client, email="bob@example.com")
        token = signup_and_login(client)

        response = client.put(
            "/api/auth/update",
            headers=auth(token),
            files={"file": ("me.png", b"png-bytes", "image/png")},
            data={"email": "bob@example.com"},
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Email is already registered"}
        assert storage.object_count == 0


class TestVideoUpload:
    def test_admin_upload(self, client, storage):
        token = signup_and_login(client, role="admin")

        response = upload_video(client, token)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Video uploaded successfully!"
        assert body["video"]["url"] == body["fileDetails"]["url"]
        assert body["video"]["title"] == "Intro"
        assert body["fileDetails"]["originalName"] == "clip.mp4"
        assert body["fileDetails"]["size"] == 6
        assert storage.has_object(body["fileDetails"]["blobName"])

    def test_non_admin_is_refused(self, client, storage):
        token = signup_and_login(client)

        response = upload_video(client, token)

        assert response.status_code == 403
        assert response.json() == {"message": "Unauthorized"}
        assert storage.object_count == 0
        assert client.get("/api/videos/").json() == []

    def test_upload_without_token(self, client):
        response = client.post(
            "/api/videos/upload",
            files={"video": ("clip.mp4", b"frames", "video/mp4")},
            data={"title": "Intro"},
        )

        assert response.status_code == 401

    def test_oversized_upload(self, app, client):
        small = MockStorageClient(UploadPolicy(max_video_bytes=4))
        app.dependency_overrides[get_storage_client] = lambda: small
        token = signup_and_login(client, role="admin")

        response = upload_video(client, token)

        assert response.status_code == 400
        assert response.json()["message"].startswith("File size exceeds limit")
        assert small.object_count == 0
        assert client.get("/api/videos/").json() == []

    def test_unsupported_format(self, client, storage):
        token = signup_and_login(client, role="admin")

        response = upload_video(client, token, filename="me.png", content_type="image/png")

        assert response.status_code == 400
        assert response.json() == {
            "message": "Invalid video format. Allowed formats: MP4, MPEG, MOV, AVI, WMV, WebM"
        }
        assert storage.object_count == 0

    def test_missing_file(self, client):
        token = signup_and_login(client, role="admin")

        response = client.post("/api/videos/upload", headers=auth(token), data={"title": "Intro"})

        assert response.status_code == 400
        assert response.json() == {"message": "No video file uploaded"}

    def test_storage_outage(self, client, storage):
        storage.fail_writes = True
        token = signup_and_login(client, role="admin")

        response = upload_video(client, token)

        assert response.status_code == 503
        assert client.get("/api/videos/").json() == []


class TestBrowsing:
    def test_list_includes_comments(self, client):
        admin = signup_and_login(client, email="admin@example.com", role="admin")
        video_id = upload_video(client, admin).json()["video"]["id"]
        user = signup_and_login(client)
        client.post("/api/comments/add", headers=auth(user), json={"videoId": video_id, "comment": "Nice"})

        videos = client.get("/api/videos/").json()

        assert [v["id"] for v in videos] == [video_id]
        assert videos[0]["comments"][0]["username"] == "ana"
        assert videos[0]["comments"][0]["comment"] == "Nice"

    def test_get_video(self, client):
        admin = signup_and_login(client, role="admin")
        video_id = upload_video(client, admin).json()["video"]["id"]

        response = client.get("/api/videos/get", params={"id": video_id})

        assert response.status_code == 200
        assert response.json()["comments"] == []

    def test_get_unknown_video(self, client):
        response = client.get("/api/videos/get", params={"id": str(ObjectId())})

        assert response.status_code == 404
        assert response.json() == {"message": "Video not found"}

    def test_get_without_id_is_404(self, client):
        response = client.get("/api/videos/get")

        assert response.status_code == 404
        assert response.json() == {"message": "Video not found"}

    def test_object_metadata(self, client):
        admin = signup_and_login(client, role="admin")
        key = upload_video(client, admin).json()["fileDetails"]["blobName"]

        response = client.get(f"/api/videos/metadata/{key}", headers=auth(admin))

        assert response.status_code == 200
        assert response.json()["originalName"] == "clip.mp4"
        assert response.json()["contentType"] == "video/mp4"

    def test_metadata_of_unknown_object(self, client):
        token = signup_and_login(client)

        response = client.get("/api/videos/metadata/videos/missing.mp4", headers=auth(token))

        assert response.status_code == 404


class TestComments:
    def test_comment_on_unknown_video(self, client):
        token = signup_and_login(client)

        response = client.post(
            "/api/comments/add",
            headers=auth(token),
            json={"videoId": str(ObjectId()), "comment": "Hello"},
        )

        assert response.status_code == 404
        assert response.json() == {"message": "Video not found"}

    def test_blank_comment(self, client):
        admin = signup_and_login(client, role="admin")
        video_id = upload_video(client, admin).json()["video"]["id"]

        response = client.post(
            "/api/comments/add",
            headers=auth(admin),
            json={"videoId": video_id, "comment": "   "},
        )

        assert response.status_code == 400
        assert client.get("/api/videos/get", params={"id": video_id}).json()["comments"] == []

    def test_comment_requires_token(self, client):
        response = client.post("/api/comments/add", json={"videoId": str(ObjectId()), "comment": "Hi"})

        assert response.status_code == 401

    def test_comment_success(self, client):
        admin = signup_and_login(client, role="admin")
        video_id = upload_video(client, admin).json()["video"]["id"]

        response = client.post(
            "/api/comments/add",
            headers=auth(admin),
            json={"videoId": video_id, "comment": "  First!  "},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["videoId"] == video_id
        assert body["comment"] == "First!"
        assert body["username"] == "ana"


class TestMisc:
    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"message": "Route not found"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"

    def test_readiness_reports_storage_outage(self, client, storage):
        storage.fail_writes = True

        response = client.get("/health/ready")

        assert response.status_code == 503
        checks = {check["name"]: check["status"] for check in response.json()["checks"]}
        assert checks == {"configuration": "ok", "database": "ok", "storage": "error"}


class SlowFeed:
    """Feed whose database round trip takes a full second."""

    def list_feed(self):
        time.sleep(1)
        return []


class TestConcurrency:
    def test_slow_feed_does_not_stall_health(self, app):
        """A blocking catalog query must not hold up the event loop."""
        app.dependency_overrides[get_feed_service] = lambda: SlowFeed()

        with TestClient(app) as shared, ThreadPoolExecutor(max_workers=1) as pool:
            feed = pool.submit(shared.get, "/api/videos/")
            time.sleep(0.1)

            started = time.perf_counter()
            health = shared.get("/health")
            elapsed = time.perf_counter() - started

            assert health.status_code == 200
            assert elapsed < 0.5
            assert feed.result().status_code == 200

    def test_concurrent_first_use_shares_one_database(self, monkeypatch):
        monkeypatch.setattr(dependencies, "_database", None)
        settings = get_settings()

        with ThreadPoolExecutor(max_workers=8) as pool:
            databases = list(pool.map(lambda _: dependencies.get_database(settings), range(8)))

        assert len({id(database) for database in databases}) == 1

    def test_concurrent_first_use_shares_one_storage_client(self, monkeypatch):
        monkeypatch.setattr(dependencies, "_storage_client", None)
        settings = get_settings()
        policy = get_upload_policy(settings)

        with ThreadPoolExecutor(max_workers=8) as pool:
            clients = list(pool.map(lambda _: get_storage_client(settings, policy), range(8)))

        assert len({id(client) for client in clients}) == 1


class TestStartup:
    def test_startup_requires_signing_secret(self, monkeypatch):
        """The API refuses to serve without a token signing secret."""
        from src.main import create_app

        monkeypatch.setenv("JWT_SECRET", "")
        get_settings.cache_clear()
        try:
            with pytest.raises(RuntimeError, match="JWT_SECRET"):
                with TestClient(create_app()):
                    pass
        finally:
            monkeypatch.undo()
            get_settings.cache_clear()
