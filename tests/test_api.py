"""Tests for the example API routes."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from main import app
from core.security import verify_password
from models import User

CONTENT = "FastAPI handlers receive typed request objects that were validated against declared rules. " * 2


def user_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "name": "Ann Smith",
        "email": "ann@example.com",
        "password": "secret123",
        "password_confirmation": "secret123",
        "age": 30,
        "interests": ["music", "chess"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client(db) -> TestClient:
    return TestClient(app)


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "healthy", "version": "0.1.0"}

    def test_correlation_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Correlation-ID": "abc123"})
        assert response.headers["X-Correlation-ID"] == "abc123"

    def test_correlation_id_is_generated(self, client: TestClient) -> None:
        response = client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 8


class TestCreateUser:
    """Test POST /api/users/."""

    def test_creates_user_from_json(self, client: TestClient, db) -> None:
        response = client.post("/api/users/", json=user_payload())
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "ann@example.com"
        assert user["age"] == 30
        assert user["interests"] == ["music", "chess"]
        assert user["phone"] is None
        assert "password" not in user

        stored = db.get(User, user["id"])
        assert stored.password_hash.startswith("$2")
        assert verify_password("secret123", stored.password_hash)
        assert not verify_password("secret124", stored.password_hash)

    def test_duplicate_email(self, client: TestClient, existing_user: User) -> None:
        response = client.post("/api/users/", json=user_payload(email=existing_user.email))
        assert response.status_code == 422
        body = response.json()
        assert body["field"] == "email"
        assert body["errors"] == {"email": ["This email address is already in use."]}

    def test_underage(self, client: TestClient) -> None:
        response = client.post("/api/users/", json=user_payload(age="15"))
        assert response.status_code == 422
        body = response.json()
        assert body["field"] == "age"
        assert body["expected_type"] == "integer"
        assert body["received_type"] == "string"
        assert body["errors"]["age"] == ["You must be at least 18 years old to register."]

    def test_overlong_age_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/users/", json=user_payload(age="9" * 5000))
        assert response.status_code == 422
        assert response.json()["field"] == "age"

    def test_collects_every_failing_field(self, client: TestClient) -> None:
        response = client.post(
            "/api/users/",
            json=user_payload(name="", password_confirmation="other", phone="12ab", interests=[]),
        )
        errors = response.json()["errors"]
        assert list(errors) == ["name", "password", "phone", "interests"]
        assert errors["name"] == ["The full name field is required."]
        assert errors["password"] == ["The password confirmation does not match."]
        assert errors["phone"] == ["The phone number format is invalid."]
        assert response.json()["field"] == "name"

    def test_invalid_interest_item(self, client: TestClient) -> None:
        response = client.post("/api/users/", json=user_payload(interests=["ok", 5]))
        assert response.json()["errors"] == {"interests.1": ["The interests.1 must be a string."]}

    def test_multipart_with_avatar(self, client: TestClient) -> None:
        data = user_payload()
        data["interests[]"] = data.pop("interests")
        response = client.post(
            "/api/users/",
            data=data,
            files={"avatar": ("me.png", b"\x89PNG", "image/png")},
        )
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["avatar_filename"] == "me.png"
        assert user["age"] == 30

    def test_avatar_must_be_image(self, client: TestClient) -> None:
        data = user_payload()
        data["interests[]"] = data.pop("interests")
        response = client.post(
            "/api/users/",
            data=data,
            files={"avatar": ("cv.pdf", b"%PDF", "application/pdf")},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["field"] == "avatar"
        assert body["expected_type"] == "file"
        assert body["received_type"] == "UploadFile"
        assert body["errors"]["avatar"][0] == "The profile picture must be an image."

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/api/users/", content=b"{", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E2021_INVALID_JSON"


class TestListUsers:
    """Test GET /api/users/ with query-string filters."""

    @pytest.fixture
    def users(self, db) -> list[User]:
        people = [
            User(name="Ann", email="ann@example.com", age=25, active=True),
            User(name="Bob", email="bob@example.com", age=40, active=False),
            User(name="Cid", email="cid@example.com", age=60, active=True),
        ]
        db.add_all(people)
        db.commit()
        return people

    def test_filters(self, client: TestClient, users: list[User]) -> None:
        response = client.get("/api/users/", params={"minAge": "30", "sortBy": "age", "sortDirection": "desc"})
        assert response.status_code == 200
        body = response.json()
        assert [u["name"] for u in body["data"]] == ["Cid", "Bob"]
        assert body["total"] == 2
        assert body["perPage"] == 15

    def test_boolean_and_search(self, client: TestClient, users: list[User]) -> None:
        response = client.get("/api/users/", params={"active": "true", "search": "ci"})
        assert [u["name"] for u in response.json()["data"]] == ["Cid"]

    def test_per_page(self, client: TestClient, users: list[User]) -> None:
        body = client.get("/api/users/", params={"perPage": "1", "sortBy": "name"}).json()
        assert [u["name"] for u in body["data"]] == ["Ann"]
        assert body["total"] == 3

    def test_max_age_below_min_age(self, client: TestClient, db) -> None:
        response = client.get("/api/users/", params={"minAge": "50", "maxAge": "20"})
        assert response.status_code == 422
        assert response.json()["errors"] == {
            "maxAge": ["The maximum age must be greater than or equal to the minimum age."]
        }

    def test_unknown_sort_column(self, client: TestClient, db) -> None:
        response = client.get("/api/users/", params={"sortBy": "password_hash"})
        assert response.status_code == 422
        assert response.json()["field"] == "sortBy"

    def test_body_is_not_read_for_query_dto(self, client: TestClient, users: list[User]) -> None:
        response = client.request("GET", "/api/users/", json={"perPage": 500})
        assert response.status_code == 200


class TestUpdateAndDelete:
    """Test PUT and DELETE /api/users/{id}."""

    def test_update(self, client: TestClient, existing_user: User) -> None:
        response = client.put(
            f"/api/users/{existing_user.id}",
            json={"name": "Renamed", "email": "renamed@example.com", "age": "41"},
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["name"] == "Renamed"
        assert user["age"] == 41

    def test_update_missing_user(self, client: TestClient, db) -> None:
        response = client.put("/api/users/999", json={"name": "X", "email": "x@example.com", "age": 30})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E4010_NOT_FOUND"

    def test_update_validates_before_lookup(self, client: TestClient, db) -> None:
        response = client.put("/api/users/999", json={"name": "X", "email": "x@example.com", "age": 12})
        assert response.status_code == 422
        assert response.json()["errors"] == {"age": ["You must be at least 18 years old."]}

    def test_delete(self, client: TestClient, existing_user: User) -> None:
        response = client.delete(f"/api/users/{existing_user.id}")
        assert response.json() == {"deleted": existing_user.id}
        assert client.delete(f"/api/users/{existing_user.id}").status_code == 404


class TestBulkCreate:
    """Test POST /api/users/bulk with wildcard rules."""

    def test_creates_all(self, client: TestClient, db) -> None:
        response = client.post("/api/users/bulk", json={"users": [
            {"name": "A", "email": "a@example.com", "age": 20},
            {"name": "B", "email": "b@example.com", "age": "21", "phone": "123"},
        ]})
        assert response.status_code == 201
        assert response.json()["created"] == 2
        assert db.query(User).count() == 2

    def test_failures_use_concrete_paths(self, client: TestClient, existing_user: User) -> None:
        response = client.post("/api/users/bulk", json={"users": [
            {"name": "A", "email": "a@example.com", "age": 20},
            {"name": "B", "email": "taken@example.com", "age": 20},
            {"email": "c@example.com", "age": 17},
        ]})
        assert response.status_code == 422
        body = response.json()
        assert body["field"] == "users.2.name"
        assert body["errors"] == {
            "users.2.name": ["The name field is required."],
            "users.1.email": ["The email address taken@example.com is already taken."],
            "users.2.age": ["The age must be at least 18."],
        }

    def test_empty_list(self, client: TestClient, db) -> None:
        response = client.post("/api/users/bulk", json={"users": []})
        assert response.json()["errors"] == {"users": ["The users field is required."]}


class TestUnvalidated:
    """Test POST /api/users/unvalidated (validation switched off)."""

    def test_maps_without_rules(self, client: TestClient, db) -> None:
        response = client.post("/api/users/unvalidated", json={"name": "Ann", "age": "15"})
        assert response.status_code == 200
        assert response.json() == {
            "validated": False,
            "fields": {"name": "Ann", "age": 15, "phone": None},
            "unset": ["avatar", "email", "interests", "password", "phone"],
        }


class TestCreatePost:
    """Test POST /api/posts/ with multipart uploads."""

    def form(self, **overrides: Any) -> dict[str, Any]:
        data = {
            "title": "Typed DTOs",
            "content": CONTENT,
            "category": "technology",
            "tags[]": ["python", "fastapi"],
            "published": "false",
        }
        data.update(overrides)
        return data

    def test_accepts_attachments(self, client: TestClient) -> None:
        response = client.post(
            "/api/posts/",
            data=self.form(),
            files=[
                ("attachments[]", ("brochure.pdf", b"%PDF-1.4", "application/pdf")),
                ("featured_image", ("cover.jpg", b"\xff\xd8", "image/jpeg")),
            ],
        )
        assert response.status_code == 201
        body = response.json()
        assert body["tags"] == ["python", "fastapi"]
        assert body["published"] is False
        assert body["publishDate"] is None
        assert body["featuredImage"]["filename"] == "cover.jpg"
        assert [a["filename"] for a in body["attachments"]] == ["brochure.pdf"]

    def test_publish_date_required_when_published(self, client: TestClient) -> None:
        response = client.post("/api/posts/", data=self.form(published="true"))
        assert response.status_code == 422
        assert response.json()["errors"] == {
            "publish_date": ["The publish date field is required when published is true."]
        }

    def test_publish_date_in_future(self, client: TestClient) -> None:
        response = client.post(
            "/api/posts/", data=self.form(published="1", publish_date="2001-01-01")
        )
        assert response.json()["errors"] == {"publish_date": ["The publish date must be in the future."]}

    def test_attachment_type(self, client: TestClient) -> None:
        response = client.post(
            "/api/posts/",
            data=self.form(),
            files=[("attachments[]", ("run.exe", b"MZ", "application/x-msdownload"))],
        )
        body = response.json()
        assert body["field"] == "attachments.0"
        assert body["errors"]["attachments.0"] == ["The attachments.0 must be a file of type: pdf, doc, docx, zip."]

    def test_short_content_and_unknown_category(self, client: TestClient) -> None:
        response = client.post("/api/posts/", data=self.form(content="short", category="gossip"))
        assert response.json()["errors"] == {
            "content": ["The content must be at least 100 characters."],
            "category": ["Choose a valid category."],
        }
