from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from nihilism.api.deps import init_session_store
from nihilism.api.routes import router

load_dotenv(override=False)

app = FastAPI(title="nihilism", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=os.environ.get("NIHILISM_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Connections are lazy: neither Redis nor the narrator is contacted here.
    init_session_store()
    logger.info("session store ready")


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "nihilism", "version": "0.1.0"}
