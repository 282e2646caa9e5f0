from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String

from core.database import Base


class User(Base):
    """Accounts created through the example user endpoints"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255))  # empty for bulk-imported users
    age = Column(Integer)
    phone = Column(String(15))
    active = Column(Boolean, default=True, nullable=False)
    interests = Column(JSON, default=list)
    avatar_filename = Column(String(255))  # original name only, files are not stored
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
