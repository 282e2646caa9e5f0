"""
Root test configuration and fixtures for the DTO mapper.

Settings are read at import time, so the in-memory database URL is set
before anything from the backend package is imported.
"""

from __future__ import annotations

import io
import os
from collections.abc import Generator
from typing import Any

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from starlette.datastructures import Headers, UploadFile

from core.database import Base, SessionLocal, engine
from models import User


@pytest.fixture
def db() -> Generator[Any, None, None]:
    """Fresh schema per test on the shared in-memory engine."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def existing_user(db) -> User:
    user = User(name="Taken", email="taken@example.com", age=40, interests=["golf"])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_upload(filename: str, content: bytes = b"data", content_type: str = "application/octet-stream") -> UploadFile:
    """UploadFile as the form parser would build it."""
    return UploadFile(
        file=io.BytesIO(content),
        size=len(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def upload():
    return make_upload
