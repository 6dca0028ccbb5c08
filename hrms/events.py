import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hrms.db.session import engine
from hrms.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    yield
    logger.info("Application shutdown")
    await close_redis_client()
    await engine.dispose()
