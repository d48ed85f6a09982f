import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.db import DB_PATH, create_tables
from swiftpass.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
    LOG_LEVEL,
    validate_settings,
)
from swiftpass.routers import admin, attendance, auth, core, credentials, scan
from swiftpass.services.runtime import reset_runtime

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SwiftPass API")

# -----------------------------
# CORS (mobile app dev server)
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)


# -----------------------------
# Startup / shutdown
# -----------------------------
@app.on_event("startup")
def _startup():
    problems = validate_settings()
    for problem in problems:
        logger.error("Configuration: %s", problem)
    if problems:
        raise RuntimeError("Invalid SwiftPass configuration: " + " ".join(problems))
    create_tables()
    logger.info("SwiftPass ready (db=%s)", DB_PATH)


@app.on_event("shutdown")
def _shutdown():
    # Stops every pending rotation timer.
    reset_runtime()


app.include_router(core.router)
app.include_router(auth.router)
app.include_router(credentials.router)
app.include_router(scan.router)
app.include_router(attendance.router)
app.include_router(admin.router)
