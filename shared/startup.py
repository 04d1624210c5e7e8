"""Application lifespan: make sure the schema exists before serving."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.schema import MetaData

logger = logging.getLogger(__name__)


async def create_schema(metadata: MetaData, engine, *, retries: int = 10, wait_seconds: float = 2.0) -> None:
    """Run ``create_all``, waiting for the database while it is still starting up."""
    attempt = 1
    while True:
        try:
            await asyncio.to_thread(metadata.create_all, bind=engine)
            return
        except OperationalError as exc:
            if attempt >= retries:
                logger.error("Database still unavailable after %s attempts", retries)
                raise
            logger.warning("Database unavailable (attempt %s/%s): %s", attempt, retries, exc)
            attempt += 1
            await asyncio.sleep(wait_seconds)


def database_lifespan_factory(
    *,
    service_name: str,
    metadata: MetaData,
    engine,
    retries: int = 10,
    wait_seconds: float = 2.0,
):
    """Build the ``lifespan`` callable passed to ``FastAPI(...)``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s", service_name)
        await create_schema(metadata, engine, retries=retries, wait_seconds=wait_seconds)
        yield
        logger.info("Stopped %s", service_name)

    return lifespan
