"""
FastAPI Application — Passport Capture.

Serves the document pipeline (validation, face match) and the shared pairing
store that the desktop and the phone both poll.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passport_capture.api.routes.documents import router as documents_router
from passport_capture.api.routes.pairing import router as pairing_router
from passport_capture.config.settings import get_settings

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Passport Capture",
    description="Passport capture, anti-spoofing, MRZ decoding, face match and cross-device pairing.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Startup ──
@app.on_event("startup")
async def startup():
    settings = get_settings()
    if settings.pairing_store == "sql":
        from passport_capture.infrastructure.db.database import init_db
        init_db()
    logger.info(f"Passport Capture started (env={settings.env}, ocr={settings.ocr_engine})")


app.include_router(documents_router, prefix="/api/v1", tags=["Documents"])
app.include_router(pairing_router, prefix="/api/v1", tags=["Pairing"])


# ── Health ──
@app.get("/health")
async def health():
    settings = get_settings()
    return {
        "status": "ok",
        "version": "1.0.0",
        "ocr_engine": settings.ocr_engine,
        "pairing_store": settings.pairing_store,
        "accept_incomplete_documents": settings.accept_incomplete_documents,
    }


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(app, host=_settings.api_host, port=_settings.api_port)
