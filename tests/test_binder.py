"""Tests for handler introspection, binding and the FastAPI wrapper."""

import inspect
from typing import Annotated

import pytest
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.testclient import TestClient

from core.errors import register_error_handlers
from mapper import (
    Binder,
    DtoRoute,
    DtoValidationError,
    MappableDTO,
    MapQueryString,
    MapRequestPayload,
    RequestDataSource,
    map_dtos,
)
from mapper.binder import REQUEST_PARAM, build_plan, get_binder, set_binder
from mapper.markers import DataSourceKind


class NameDTO(MappableDTO):
    name: str

    def rules(self):
        return {"name": "required|string|min:2"}


class PageDTO(MappableDTO):
    page: int | None = None
    per_page: int | None = None

    def rules(self):
        return {"page": "nullable|integer|min:1", "per_page": "nullable|integer|max:50"}


class TwoRequiredDTO(MappableDTO):
    a: str
    b: str

    def rules(self):
        return {"a": "required", "b": "required"}


class TestBuildPlan:
    """Test discovering DTO parameters."""

    def test_default_marker_is_validated_payload(self) -> None:
        def handler(dto: NameDTO, other: int): ...

        plan = build_plan(handler)
        assert [b.name for b in plan.bindings] == ["dto"]
        binding = plan.bindings[0]
        assert binding.dto_type is NameDTO
        assert binding.source is DataSourceKind.PAYLOAD
        assert binding.options.validate is True
        assert binding.options.stop_on_first_failure is False

    def test_markers_select_source_and_options(self) -> None:
        def handler(
            filters: Annotated[PageDTO, MapQueryString()],
            body: Annotated[NameDTO, MapRequestPayload(validate=False, stop_on_first_failure=True)],
        ): ...

        query, payload = build_plan(handler).bindings
        assert query.source is DataSourceKind.QUERY
        assert payload.source is DataSourceKind.PAYLOAD
        assert payload.options.validate is False
        assert payload.options.stop_on_first_failure is True

    def test_first_marker_wins(self) -> None:
        def handler(dto: Annotated[NameDTO, "doc", MapQueryString(), MapRequestPayload()]): ...

        assert build_plan(handler).bindings[0].source is DataSourceKind.QUERY

    def test_non_dto_parameters_ignored(self) -> None:
        def handler(name: str, count: int = 0, *args, **kwargs): ...

        assert build_plan(handler).bindings == ()


class TestBinder:
    """Test plan caching, introspection fallback and binding."""

    def test_plan_is_cached(self) -> None:
        def handler(dto: NameDTO): ...

        binder = Binder()
        assert binder.plan_for(handler) is binder.plan_for(handler)

    def test_introspection_failure_yields_empty_plan(self) -> None:
        def handler(dto: "UndefinedDTO"): ...  # noqa: F821

        plan = Binder(strict=False).plan_for(handler)
        assert plan.bindings == ()
        assert plan.introspected is False

    def test_strict_introspection_reraises(self) -> None:
        def handler(dto: "UndefinedDTO"): ...  # noqa: F821

        with pytest.raises(NameError):
            Binder(strict=True).plan_for(handler)

    def test_bind_resolves_each_parameter(self) -> None:
        def handler(dto: NameDTO, filters: Annotated[PageDTO, MapQueryString()]): ...

        source = RequestDataSource(body={"name": "Ann"}, query={"page": "3"})
        bound = Binder().bind(handler, source)
        assert set(bound) == {"dto", "filters"}
        assert bound["dto"].name == "Ann"
        assert bound["filters"].page == 3

    def test_bind_propagates_validation_error(self) -> None:
        def handler(dto: NameDTO): ...

        with pytest.raises(DtoValidationError):
            Binder().bind(handler, RequestDataSource(body={"name": "A"}))

    def test_bind_without_dtos(self) -> None:
        def handler(x: int): ...

        assert Binder().bind(handler, RequestDataSource()) == {}

    def test_set_binder_replaces_default(self) -> None:
        previous = get_binder()
        replacement = Binder()
        set_binder(replacement)
        try:
            assert get_binder() is replacement
        finally:
            set_binder(previous)


class TestMapDtos:
    """Test the endpoint wrapper's signature."""

    def test_endpoint_without_dtos_untouched(self) -> None:
        async def endpoint(x: int):
            return x

        assert map_dtos(endpoint, Binder()) is endpoint

    def test_dto_parameters_hidden(self) -> None:
        async def endpoint(item_id: int, dto: NameDTO, limit: int = 10):
            return dto

        wrapped = map_dtos(endpoint, Binder())
        parameters = inspect.signature(wrapped).parameters
        assert "dto" not in parameters
        assert list(parameters) == ["item_id", "limit", REQUEST_PARAM]
        assert parameters[REQUEST_PARAM].annotation is Request

    def test_existing_request_parameter_reused(self) -> None:
        async def endpoint(request: Request, dto: NameDTO):
            return dto

        parameters = inspect.signature(map_dtos(endpoint, Binder())).parameters
        assert list(parameters) == ["request"]


def get_prefix() -> str:
    return "Hi"


class TestFastAPIIntegration:
    """Test DTO binding through real requests."""

    @pytest.fixture
    def client(self) -> TestClient:
        router = APIRouter(route_class=DtoRoute)

        @router.post("/greet/{times}")
        async def greet(times: int, dto: NameDTO, prefix: str = Depends(get_prefix)):
            return {"message": " ".join([f"{prefix} {dto.name}"] * times)}

        @router.get("/pages")
        def pages(filters: Annotated[PageDTO, MapQueryString()]):
            return {"page": filters.page, "per_page": filters.per_page}

        @router.post("/raw")
        async def raw(request: Request, dto: Annotated[NameDTO, MapRequestPayload(validate=False)]):
            return {"name": getattr(dto, "name", None), "path": request.url.path}

        @router.post("/first")
        async def first(dto: Annotated[TwoRequiredDTO, MapRequestPayload(stop_on_first_failure=True)]):
            return {}

        @router.get("/plain")
        async def plain(q: str = "x"):
            return {"q": q}

        app = FastAPI()
        register_error_handlers(app)
        app.include_router(router)
        return TestClient(app)

    def test_payload_dto_with_path_param_and_dependency(self, client: TestClient) -> None:
        response = client.post("/greet/2", json={"name": "Ann"})
        assert response.status_code == 200
        assert response.json() == {"message": "Hi Ann Hi Ann"}

    def test_validation_failure_is_422(self, client: TestClient) -> None:
        response = client.post("/greet/1", json={"name": "A"})
        assert response.status_code == 422
        assert response.json() == {
            "message": 'Validation failed for field "name". Expected type: string, received: string',
            "errors": {"name": ["The name must be at least 2 characters."]},
            "field": "name",
            "expected_type": "string",
            "received_type": "string",
        }

    def test_query_dto_on_sync_endpoint(self, client: TestClient) -> None:
        response = client.get("/pages", params={"page": "2", "per_page": "20"})
        assert response.json() == {"page": 2, "per_page": 20}

    def test_query_dto_failure(self, client: TestClient) -> None:
        response = client.get("/pages", params={"per_page": "500"})
        assert response.status_code == 422
        assert response.json()["field"] == "per_page"
        assert response.json()["expected_type"] == "integer"

    def test_unvalidated_marker(self, client: TestClient) -> None:
        response = client.post("/raw", json={})
        assert response.json() == {"name": None, "path": "/raw"}

    def test_stop_on_first_failure_marker(self, client: TestClient) -> None:
        response = client.post("/first", json={})
        assert response.json()["errors"] == {"a": ["The a field is required."]}

    def test_plain_route_unaffected(self, client: TestClient) -> None:
        assert client.get("/plain", params={"q": "y"}).json() == {"q": "y"}

    def test_form_body(self, client: TestClient) -> None:
        response = client.post("/greet/1", data={"name": "Bob"})
        assert response.json() == {"message": "Hi Bob"}
