"""DTO Mapper example application.

Users and blog posts routers whose handlers take resolved DTOs. Run with
``python main.py`` from ``backend/`` or ``uvicorn main:app``.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import posts, users
from core.config import settings
from core.database import engine, Base
from core.errors import register_error_handlers
from core.logging import configure_logging, get_logger
from core.middleware import RequestLoggingMiddleware
from mapper import Binder, RuleBook, SqlPresenceVerifier, Validator, set_binder

VERSION = "0.1.0"

configure_logging(level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON, log_sql=settings.LOG_SQL)

log = get_logger(__name__)

# unique/exists rules check against the application database
set_binder(Binder(Validator(RuleBook(verifier=SqlPresenceVerifier()))))


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    log.info("startup", tables=sorted(Base.metadata.tables), database=engine.url.get_backend_name())
    try:
        yield
    finally:
        engine.dispose()
        log.info("shutdown")


app = FastAPI(
    title="DTO Mapper API",
    description="Example API whose handlers receive validated, typed request DTOs",
    version=VERSION,
    lifespan=lifespan,
)

register_error_handlers(app)

# Last added runs first: CORS wraps request logging
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(posts.router, prefix="/api/posts", tags=["posts"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.APP_DEBUG,
        log_config=None,  # logging is configured above
    )
