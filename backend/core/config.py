from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database (backs presence rules such as unique/exists)
    DATABASE_URL: str = "sqlite:///./dto_mapper.db"

    # Server
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    APP_DEBUG: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]  # JSON list in the environment

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # One JSON object per line instead of colored console output
    LOG_SQL: bool = False   # Echo SQLAlchemy statements

    # Mapper
    MAPPER_STRICT_INTROSPECTION: bool = False  # Re-raise handler introspection failures
    MAPPER_LOG_RESOLUTIONS: bool = False       # Debug-log every resolved DTO

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
