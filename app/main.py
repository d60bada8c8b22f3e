from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.db import create_schema
from core.logging import setup_logging
from exceptions import register_exception_handlers
from routers import fleet, health, maintenance, metrics, parts

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if os.getenv("AUTO_CREATE_SCHEMA", "false").lower() == "true":
        # Development convenience; production schemas are migrated separately
        await create_schema()
        logger.info("Database schema created")
    yield


app = FastAPI(title="Paddock Fleet API", lifespan=lifespan)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],   # Allows POST, GET, OPTIONS, etc
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(fleet.router)
app.include_router(maintenance.router)
app.include_router(parts.router)
app.include_router(metrics.router)
