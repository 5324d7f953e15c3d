# src/app/main.py
from __future__ import annotations

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.app.config import settings
from src.app.domain.errors import ImportConfigurationError
from src.app.routers.v2.imports import router as imports_v2_router
from src.app.routers.v2.items import router as items_v2_router
from src.app.routers.v2.media import router as media_v2_router
from src.app.routers.v2.quota import router as quota_v2_router
from src.app.routers.vision import router as vision_router

# Plain stdout logging (good for dev and containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Screenshot Library API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vision_router)

app.include_router(imports_v2_router)
app.include_router(items_v2_router)
app.include_router(media_v2_router)
app.include_router(quota_v2_router)


@app.exception_handler(ImportConfigurationError)
async def import_configuration_error_handler(request: Request, exc: ImportConfigurationError):
    logger.error("Import pipeline misconfigured: %s", exc.errors)
    return JSONResponse(status_code=503, content={"detail": "Import service misconfigured"})


@app.get("/health")
def health():
    return {"ok": True}
