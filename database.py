import os
import logging
from typing import List, Optional

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

import models  # noqa: F401  (registers the bookings table on SQLModel.metadata)

logger = logging.getLogger(__name__)

# 1. Load environment variables from .env file
load_dotenv()


# 2. Settings are read lazily so importing the app never needs a database
def get_database_url() -> str:
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")
    return database_url


def get_sql_echo() -> bool:
    return os.environ.get("SQL_ECHO", "false").strip().lower() in ("1", "true", "yes")


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper()


def get_cors_origins() -> List[str]:
    raw = os.environ.get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


# 3. Create the Async Engine
def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    url = database_url or get_database_url()
    return create_async_engine(url, echo=get_sql_echo(), future=True)


def make_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database schema ready (%s)", engine.url.get_backend_name())
