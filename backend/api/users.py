"""Users API Routes

Example CRUD endpoints whose input arrives as resolved DTOs.
"""
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from core.database import delete_entity, fetch_one, get_db, save_entities
from core.errors import raise_result
from core.logging import api_logger
from core.security import hash_password
from dtos import BulkCreateUsersDTO, CreateUserDTO, UpdateUserDTO, UserFilterDTO
from mapper import DtoRoute, MapQueryString, MapRequestPayload
from models import User

log = api_logger()

router = APIRouter(route_class=DtoRoute)

DEFAULT_PER_PAGE = 15


# === Response Models ===

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    age: int | None
    phone: str | None
    active: bool
    interests: list[str] | None
    avatar_filename: str | None
    created_at: datetime | None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    data: list[UserResponse]
    total: int
    perPage: int


class UserCreatedResponse(BaseModel):
    message: str
    user: UserResponse


class BulkCreatedResponse(BaseModel):
    message: str
    created: int
    users: list[UserResponse]


# === Endpoints ===

@router.get("/", response_model=UserListResponse)
def list_users(
    filters: Annotated[UserFilterDTO, MapQueryString()],
    db: Session = Depends(get_db),
):
    """List users matching the query-string filters."""
    query = select(User)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if filters.minAge is not None:
        query = query.where(User.age >= filters.minAge)
    if filters.maxAge is not None:
        query = query.where(User.age <= filters.maxAge)
    if filters.active is not None:
        query = query.where(User.active == filters.active)

    column = getattr(User, filters.sortBy or "created_at")
    query = query.order_by(column.desc() if filters.sortDirection == "desc" else column.asc())

    per_page = filters.perPage or DEFAULT_PER_PAGE
    total = db.scalar(select(func.count()).select_from(query.subquery()))
    users = db.scalars(query.limit(per_page)).all()

    log.debug("users_listed", total=total, returned=len(users))
    return UserListResponse(
        data=[UserResponse.model_validate(u) for u in users],
        total=total,
        perPage=per_page,
    )


@router.post("/", response_model=UserCreatedResponse, status_code=201)
def create_user(dto: CreateUserDTO, db: Session = Depends(get_db)):
    """Create a user from a validated JSON or multipart payload."""
    user = User(
        name=dto.name,
        email=dto.email,
        password_hash=hash_password(dto.password),
        age=dto.age,
        phone=dto.phone,
        interests=list(dto.interests),
        avatar_filename=dto.avatar.filename if dto.avatar is not None else None,
    )
    result = save_entities(db, user)
    raise_result(result)

    log.info("user_created", user_id=user.id, has_avatar=dto.avatar is not None)
    return UserCreatedResponse(message="User created", user=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=UserCreatedResponse)
def update_user(user_id: int, dto: UpdateUserDTO, db: Session = Depends(get_db)):
    result = fetch_one(db, User, user_id, entity_name="User")
    raise_result(result)
    user = result.unwrap()

    user.name = dto.name
    user.email = dto.email
    user.age = dto.age
    if dto.is_set("phone"):
        user.phone = dto.phone
    raise_result(save_entities(db, user))

    log.info("user_updated", user_id=user.id)
    return UserCreatedResponse(message="User updated", user=UserResponse.model_validate(user))


@router.post("/bulk", response_model=BulkCreatedResponse, status_code=201)
def bulk_create_users(dto: BulkCreateUsersDTO, db: Session = Depends(get_db)):
    """Create every user of the payload in one transaction."""
    users = [
        User(
            name=item["name"],
            email=item["email"],
            age=int(item["age"]),
            phone=item.get("phone"),
        )
        for item in dto.users
    ]
    result = save_entities(db, *users)
    raise_result(result)

    log.info("users_bulk_created", count=len(users))
    return BulkCreatedResponse(
        message="Users created",
        created=len(users),
        users=[UserResponse.model_validate(u) for u in users],
    )


@router.post("/unvalidated")
def echo_unvalidated(dto: Annotated[CreateUserDTO, MapRequestPayload(validate=False)]):
    """Map the payload without validation and echo what was populated."""
    fields = {
        name: value
        for name, value in dto.to_dict().items()
        if name not in ("password", "avatar")
    }
    return {"validated": False, "fields": fields, "unset": sorted(
        name for name in CreateUserDTO.descriptor().fields if not dto.is_set(name)
    )}


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    raise_result(
        fetch_one(db, User, user_id, entity_name="User").and_then(lambda user: delete_entity(db, user))
    )

    log.info("user_deleted", user_id=user_id)
    return {"deleted": user_id}
