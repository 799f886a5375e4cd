from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from internmatch.api.sessions import router as sessions_router
from internmatch.config import settings
from internmatch.websocket import router as ws_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="InternMatch Assistant", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "internmatch-assistant"}


app.include_router(sessions_router)
app.include_router(ws_router)


def run() -> None:
    uvicorn.run(
        "internmatch.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
