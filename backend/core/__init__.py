# Shared infrastructure: settings, logging, persistence, errors
from core.config import settings, get_settings
from core.logging import configure_logging, get_logger, api_logger, mapper_logger, db_logger
from core.database import engine, Base, SessionLocal, get_db
