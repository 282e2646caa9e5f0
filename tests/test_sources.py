"""Tests for the raw data source and request parsing."""

from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from core.errors import register_error_handlers
from mapper import RequestDataSource
from mapper.sources import expand_brackets, merge_files


def _plain(value: Any) -> Any:
    if isinstance(value, UploadFile):
        return value.filename
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


class TestExpandBrackets:
    """Test bracket-notation expansion of flat form and query pairs."""

    def test_plain_keys(self) -> None:
        assert expand_brackets([("name", "Ann"), ("age", "30")]) == {"name": "Ann", "age": "30"}

    def test_appended_list(self) -> None:
        assert expand_brackets([("tags[]", "a"), ("tags[]", "b")]) == {"tags": ["a", "b"]}

    def test_indexed_objects(self) -> None:
        pairs = [
            ("users[0][name]", "Ann"),
            ("users[0][email]", "ann@example.com"),
            ("users[1][name]", "Bob"),
        ]
        assert expand_brackets(pairs) == {
            "users": [{"name": "Ann", "email": "ann@example.com"}, {"name": "Bob"}]
        }

    def test_named_nesting(self) -> None:
        assert expand_brackets([("filter[age][min]", "18")]) == {"filter": {"age": {"min": "18"}}}

    def test_repeated_plain_key_becomes_list(self) -> None:
        assert expand_brackets([("id", "1"), ("id", "2"), ("id", "3")]) == {"id": ["1", "2", "3"]}

    def test_sparse_indices_are_compacted(self) -> None:
        assert expand_brackets([("a[5]", "x"), ("a[2]", "y")]) == {"a": ["y", "x"]}

    def test_index_order_is_numeric(self) -> None:
        huge = "9" * 5000
        pairs = [(f"a[{huge}]", "last"), ("a[10]", "b"), ("a[9]", "a")]
        assert expand_brackets(pairs) == {"a": ["a", "b", "last"]}

    def test_non_ascii_digits_are_keys(self) -> None:
        assert expand_brackets([("a[\u0663]", "x")]) == {"a": {"\u0663": "x"}}

    def test_malformed_brackets_kept_literal(self) -> None:
        assert expand_brackets([("[x]", "1"), ("a[b", "2")]) == {"[x]": "1", "a[b": "2"}


class TestDataSource:
    """Test the body and query views."""

    def test_files_win_over_fields(self, upload) -> None:
        avatar = upload("a.png")
        source = RequestDataSource(body={"avatar": "text", "name": "Ann"}, files={"avatar": avatar})
        assert source.body_view()["avatar"] is avatar
        assert source.body_view()["name"] == "Ann"
        assert source.files()["avatar"] is avatar

    def test_nested_file_merge(self, upload) -> None:
        doc = upload("doc.pdf")
        merged = merge_files({"post": {"title": "T"}}, {"post": {"file": doc}})
        assert merged == {"post": {"title": "T", "file": doc}}

    def test_query_is_separate(self) -> None:
        source = RequestDataSource(body={"a": 1}, query={"b": "2"})
        assert dict(source.body_view()) == {"a": 1}
        assert dict(source.query_view()) == {"b": "2"}

    def test_views_are_read_only(self) -> None:
        source = RequestDataSource(body={"a": 1})
        with pytest.raises(TypeError):
            source.body_view()["a"] = 2

    def test_empty_source(self) -> None:
        source = RequestDataSource()
        assert dict(source.body_view()) == {}
        assert dict(source.query_view()) == {}


class TestFromRequest:
    """Test reading a Starlette request into a data source."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        register_error_handlers(app)

        @app.post("/echo")
        async def echo(request: Request) -> dict[str, Any]:
            source = await RequestDataSource.from_request(request)
            body = {key: _plain(value) for key, value in source.body_view().items()}
            return {"body": body, "query": dict(source.query_view()), "files": sorted(source.files())}

        return TestClient(app)

    def test_json_body(self, client: TestClient) -> None:
        response = client.post("/echo?page=2", json={"name": "Ann", "tags": ["a"]})
        assert response.json() == {
            "body": {"name": "Ann", "tags": ["a"]},
            "query": {"page": "2"},
            "files": [],
        }

    def test_empty_json_body(self, client: TestClient) -> None:
        response = client.post("/echo", content=b"", headers={"content-type": "application/json"})
        assert response.json()["body"] == {}

    def test_vendor_json_type(self, client: TestClient) -> None:
        response = client.post(
            "/echo", content=b'{"a": 1}', headers={"content-type": "application/vnd.api+json"}
        )
        assert response.json()["body"] == {"a": 1}

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post("/echo", content=b"{nope", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E2021_INVALID_JSON"

    def test_json_array_rejected(self, client: TestClient) -> None:
        response = client.post("/echo", json=[1, 2])
        assert response.status_code == 400

    def test_urlencoded_form(self, client: TestClient) -> None:
        response = client.post("/echo", data={"name": "Ann", "tags[]": ["a", "b"]})
        assert response.json()["body"] == {"name": "Ann", "tags": ["a", "b"]}

    def test_multipart_with_files(self, client: TestClient) -> None:
        response = client.post(
            "/echo",
            data={"title": "Hello"},
            files=[
                ("cover", ("cover.png", b"png", "image/png")),
                ("attachments[]", ("a.pdf", b"1", "application/pdf")),
                ("attachments[]", ("b.pdf", b"2", "application/pdf")),
            ],
        )
        payload = response.json()
        assert payload["body"]["title"] == "Hello"
        assert payload["body"]["cover"] == "cover.png"
        assert payload["files"] == ["attachments", "cover"]

    def test_query_brackets(self, client: TestClient) -> None:
        response = client.post("/echo?ids[]=1&ids[]=2&sort=name", json={})
        assert response.json()["query"] == {"ids": ["1", "2"], "sort": "name"}
