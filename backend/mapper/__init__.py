"""DTO Mapper

Resolves typed, validated request DTOs for FastAPI handlers.

Usage:
    from mapper import MappableDTO, MapQueryString, DtoRoute

    class UserFilterDTO(MappableDTO):
        search: str | None = None
        per_page: int | None = None

        def rules(self):
            return {"search": "nullable|string|max:255", "per_page": "nullable|integer|min:1"}

    router = APIRouter(route_class=DtoRoute)

    @router.get("/users")
    async def index(filters: Annotated[UserFilterDTO, MapQueryString()]):
        ...
"""
from .binder import Binder, BindingPlan, DtoRoute, ParameterBinding, get_binder, map_dtos, set_binder
from .caster import cast, try_cast
from .contracts import DtoDescriptor, MappableDTO, descriptor_for
from .errors import DtoConfigurationError, DtoValidationError
from .markers import MapQueryString, MapRequestPayload
from .resolver import DtoResolver, resolve
from .rules import PresenceVerifier, Rule, RuleBook, RuleEvaluator, SqlPresenceVerifier
from .sources import RequestDataSource
from .types import MISSING, ResolutionOptions, ValidationFailure
from .validator import Validator, validate

__all__ = [
    # Contract
    "MappableDTO",
    "DtoDescriptor",
    "descriptor_for",
    # Markers
    "MapRequestPayload",
    "MapQueryString",
    # Pipeline
    "RequestDataSource",
    "Validator",
    "validate",
    "cast",
    "try_cast",
    "DtoResolver",
    "resolve",
    "ResolutionOptions",
    "ValidationFailure",
    "MISSING",
    # Rules
    "Rule",
    "RuleBook",
    "RuleEvaluator",
    "PresenceVerifier",
    "SqlPresenceVerifier",
    # Binding
    "Binder",
    "BindingPlan",
    "ParameterBinding",
    "DtoRoute",
    "map_dtos",
    "get_binder",
    "set_binder",
    # Errors
    "DtoValidationError",
    "DtoConfigurationError",
]
