"""Database Module with Monadic Error Handling

Provides database session management and the query helpers the mapper's
presence rules need, with Result-based error propagation.

The engine is synchronous: presence lookups run inside rule predicates,
and the binder already moves those onto Starlette's threadpool.
"""
from typing import Any, Iterator, TypeVar

from sqlalchemy import column, create_engine, func, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.errors import AppError, ErrorCode, Ok, Result, db_error, not_found
from core.logging import db_logger

log = db_logger()

T = TypeVar("T")

engine_kwargs: dict[str, Any] = {
    "echo": settings.LOG_SQL,
}

if settings.DATABASE_URL.startswith("sqlite"):
    # Sessions are opened from threadpool workers
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs.update({
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
    })

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Dependency that yields database session."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def count_where(
    table_name: str,
    filters: dict[str, Any],
    excluding: dict[str, Any] | None = None,
    session: Session | None = None,
) -> Result[int, AppError]:
    """Count rows of ``table_name`` matching every filter.

    ``excluding`` removes rows whose column equals the given value, which
    is how an update skips the record being edited.

    Returns:
        Ok(count) on success
        Err(db_error) on database failure
    """
    excluding = excluding or {}
    columns = {*filters, *excluding}
    target = table(table_name, *(column(name) for name in columns))

    query = select(func.count()).select_from(target)
    for name, value in filters.items():
        query = query.where(target.c[name] == value)
    for name, value in excluding.items():
        query = query.where(target.c[name] != value)

    try:
        if session is not None:
            total = session.execute(query).scalar_one()
        else:
            with SessionLocal() as own_session:
                total = own_session.execute(query).scalar_one()
    except SQLAlchemyError as e:
        log.error(
            "count_failed",
            table=table_name,
            columns=sorted(columns),
            error=str(e),
        )
        return db_error(
            f"Count on {table_name} failed",
            code=ErrorCode.E4002_QUERY_FAILED,
            table=table_name,
            query=str(query),
            origin="database.count_where",
            cause=e,
        )

    log.debug("count_where", table=table_name, columns=sorted(columns), total=total)
    return Ok(total)


def fetch_one(
    session: Session,
    model: type[T],
    id: Any,
    entity_name: str | None = None,
) -> Result[T, AppError]:
    """Fetch single entity by primary key.

    Returns:
        Ok(entity) if found
        Err(not_found) if not found
        Err(db_error) on database failure
    """
    name = entity_name or model.__name__
    try:
        entity = session.get(model, id)
    except SQLAlchemyError as e:
        return db_error(f"Fetching {name} failed", origin="database.fetch_one", cause=e)
    if entity is None:
        return not_found(name, id, origin="database.fetch_one")
    return Ok(entity)


def save_entities(session: Session, *entities: T) -> Result[list[T], AppError]:
    """Insert or update entities in one transaction.

    Returns:
        Ok(entities) on success (with populated IDs)
        Err(AppError) on failure
    """
    try:
        session.add_all(entities)
        session.commit()
        for entity in entities:
            session.refresh(entity)
        return Ok(list(entities))
    except SQLAlchemyError as e:
        session.rollback()
        log.error("save_failed", count=len(entities), error=str(e))
        return db_error("Saving failed", origin="database.save_entities", cause=e)


def delete_entity(session: Session, entity: Any) -> Result[None, AppError]:
    """Delete entity from database.

    Returns:
        Ok(None) on success
        Err(AppError) on failure
    """
    try:
        session.delete(entity)
        session.commit()
        return Ok(None)
    except SQLAlchemyError as e:
        session.rollback()
        return db_error("Deleting failed", origin="database.delete_entity", cause=e)
