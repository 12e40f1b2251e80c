# backend/sagadb/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .apps.accounts.router_admin import clinics_router, users_router
from .apps.accounts.router_public import router as auth_router
from .apps.assessments.router import router as assessments_router
from .apps.audit.router import router as audit_router
from .apps.certificates.router import router as certificates_router
from .apps.courses.router import router as courses_router
from .apps.dashboard.router import router as dashboard_router
from .apps.feedback.router import router as feedback_router
from .apps.exports.router import router as export_router
from .apps.notifications.router import router as notifications_router
from .apps.notifications.scheduler import build_tickers
from .apps.rotations.router import router as rotations_router
from .apps.subgoals.router import router as subgoals_router
from .apps.supervision.router import router as supervision_router
from .apps.trainees.router import router as trainees_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    tickers = build_tickers()
    for ticker in tickers:
        ticker.start()
    if tickers:
        logger.info("Background sweeps started", extra={"tickers": [t.name for t in tickers]})
    try:
        yield
    finally:
        for ticker in tickers:
            ticker.stop()


app = FastAPI(title="SAGA API", version="1.0.0", lifespan=lifespan)
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "SAGA backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(clinics_router)
app.include_router(trainees_router)
app.include_router(subgoals_router)
app.include_router(rotations_router)
app.include_router(feedback_router)
app.include_router(courses_router)
app.include_router(assessments_router)
app.include_router(supervision_router)
app.include_router(certificates_router)
app.include_router(notifications_router)
app.include_router(audit_router)
app.include_router(dashboard_router)
app.include_router(export_router)
