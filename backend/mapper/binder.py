"""Binder

Finds the DTO parameters of a request handler and resolves them before the
handler runs.

A handler parameter is bound when its annotation (after unwrapping
``Annotated``) is a MappableDTO subclass. The first marker in the
``Annotated`` metadata selects the source and options; without one the
payload is used, validated, collecting every failure:

    @router.get("/", response_model=None)
    async def index(filters: Annotated[UserFilterDTO, MapQueryString()]): ...

    @router.post("/")
    async def store(dto: CreateUserDTO): ...

Binding plans are computed once per handler and cached. FastAPI
integration comes in two forms: ``map_dtos(endpoint)`` wraps a single
endpoint, ``DtoRoute`` wraps every endpoint of a router.
"""
from __future__ import annotations

import functools
import inspect
import threading
from dataclasses import dataclass
from typing import Annotated, Any, Callable, get_args, get_origin, get_type_hints

from fastapi.routing import APIRoute
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from core.config import settings
from core.logging import mapper_logger

from .contracts import MappableDTO, is_mappable
from .markers import DEFAULT_MARKER, DataSourceKind, DtoMarker
from .resolver import DtoResolver
from .sources import RequestDataSource
from .types import ResolutionOptions
from .validator import Validator

log = mapper_logger()

REQUEST_PARAM = "dto_mapper_request"

# Raised by inspect/typing when a handler cannot be introspected
_INTROSPECTION_ERRORS = (NameError, TypeError, ValueError, AttributeError)


@dataclass(frozen=True, slots=True)
class ParameterBinding:
    name: str
    dto_type: type[MappableDTO]
    source: DataSourceKind
    options: ResolutionOptions


@dataclass(frozen=True, slots=True)
class BindingPlan:
    """DTO parameters of one handler, in signature order."""
    bindings: tuple[ParameterBinding, ...] = ()
    introspected: bool = True

    @property
    def names(self) -> frozenset[str]:
        return frozenset(binding.name for binding in self.bindings)


def split_annotation(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Base type and metadata of a possibly ``Annotated`` hint."""
    if get_origin(annotation) is Annotated:
        base, *metadata = get_args(annotation)
        return base, tuple(metadata)
    return annotation, ()


def build_plan(handler: Callable[..., Any]) -> BindingPlan:
    signature = inspect.signature(handler)
    hints = get_type_hints(handler, include_extras=True)

    bindings = []
    for name, parameter in signature.parameters.items():
        base, metadata = split_annotation(hints.get(name, parameter.annotation))
        if not is_mappable(base):
            continue
        marker = next((m for m in metadata if isinstance(m, DtoMarker)), DEFAULT_MARKER)
        bindings.append(ParameterBinding(
            name=name,
            dto_type=base,
            source=marker.source,
            options=marker.options,
        ))
    return BindingPlan(bindings=tuple(bindings))


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class Binder:
    """Resolves the DTO arguments of handlers from a request's data.

    Usage:
        binder = Binder()
        kwargs = binder.bind(handler, RequestDataSource(body={"name": "Jan"}))
        handler(**kwargs)
    """

    def __init__(self, validator: Validator | None = None, strict: bool | None = None):
        self.validator = validator or Validator()
        self.strict = settings.MAPPER_STRICT_INTROSPECTION if strict is None else strict
        self._plans: dict[Any, BindingPlan] = {}
        self._lock = threading.Lock()

    def plan_for(self, handler: Callable[..., Any]) -> BindingPlan:
        plan = self._plans.get(handler)
        if plan is not None:
            return plan
        with self._lock:
            plan = self._plans.get(handler)
            if plan is None:
                plan = self._build(handler)
                self._plans[handler] = plan
        return plan

    def _build(self, handler: Callable[..., Any]) -> BindingPlan:
        try:
            plan = build_plan(handler)
        except _INTROSPECTION_ERRORS as e:
            if self.strict:
                raise
            log.debug(
                "binding_introspection_failed",
                handler=_handler_name(handler),
                error=str(e),
                error_type=type(e).__name__,
            )
            return BindingPlan(introspected=False)

        log.debug(
            "binding_plan_built",
            handler=_handler_name(handler),
            bindings=[
                {"name": b.name, "dto": b.dto_type.__name__, "source": b.source.value}
                for b in plan.bindings
            ],
        )
        return plan

    def bind(self, handler: Callable[..., Any], source: RequestDataSource) -> dict[str, MappableDTO]:
        """Resolved DTO per parameter name; resolution errors propagate."""
        plan = self.plan_for(handler)
        if not plan.bindings:
            return {}

        resolver = DtoResolver(source, self.validator)
        resolved: dict[str, MappableDTO] = {}
        for binding in plan.bindings:
            if binding.source is DataSourceKind.QUERY:
                resolved[binding.name] = resolver.resolve_from_query(binding.dto_type, binding.options)
            else:
                resolved[binding.name] = resolver.resolve_from_payload(binding.dto_type, binding.options)
        return resolved


_default_binder: Binder | None = None
_default_lock = threading.Lock()


def get_binder() -> Binder:
    global _default_binder
    if _default_binder is None:
        with _default_lock:
            if _default_binder is None:
                _default_binder = Binder()
    return _default_binder


def set_binder(binder: Binder) -> None:
    """Replace the process-wide binder (e.g. to plug in a presence verifier)."""
    global _default_binder
    with _default_lock:
        _default_binder = binder


# ============================================================================
# FastAPI Integration
# ============================================================================

def _request_param(parameters: dict[str, inspect.Parameter], hints: dict[str, Any]) -> str | None:
    for name, parameter in parameters.items():
        annotation, _ = split_annotation(hints.get(name, parameter.annotation))
        if isinstance(annotation, type) and issubclass(annotation, Request):
            return name
    return None


def map_dtos(endpoint: Callable[..., Any], binder: Binder | None = None) -> Callable[..., Any]:
    """Wrap ``endpoint`` so FastAPI never sees its DTO parameters.

    The wrapper asks FastAPI for the Request, reads the body once, binds
    the DTOs in the threadpool and calls the endpoint with them. Endpoints
    without DTO parameters are returned untouched.
    """
    plan = (binder or get_binder()).plan_for(endpoint)
    if not plan.bindings:
        return endpoint

    signature = inspect.signature(endpoint)
    hints = get_type_hints(endpoint, include_extras=True)
    kept = {
        name: parameter.replace(annotation=hints.get(name, parameter.annotation))
        for name, parameter in signature.parameters.items()
        if name not in plan.names
    }

    request_name = _request_param(kept, hints)
    injected = request_name is None
    if injected:
        request_name = REQUEST_PARAM
        kept[REQUEST_PARAM] = inspect.Parameter(
            REQUEST_PARAM, inspect.Parameter.KEYWORD_ONLY, annotation=Request
        )

    is_async = inspect.iscoroutinefunction(endpoint)

    @functools.wraps(endpoint)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        request: Request = kwargs.pop(request_name) if injected else kwargs[request_name]
        active = binder or get_binder()
        source = await RequestDataSource.from_request(request)
        resolved = await run_in_threadpool(active.bind, endpoint, source)
        try:
            if is_async:
                return await endpoint(*args, **kwargs, **resolved)
            return await run_in_threadpool(endpoint, *args, **kwargs, **resolved)
        finally:
            await request.close()

    wrapper.__signature__ = signature.replace(
        parameters=sorted(kept.values(), key=lambda p: p.kind),
        return_annotation=hints.get("return", signature.return_annotation),
    )
    return wrapper


class DtoRoute(APIRoute):
    """APIRoute that resolves DTO parameters of its endpoint.

    Usage:
        router = APIRouter(route_class=DtoRoute)
    """

    def __init__(self, path: str, endpoint: Callable[..., Any], **kwargs: Any):
        super().__init__(path, map_dtos(endpoint), **kwargs)
