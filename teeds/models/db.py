from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

if TYPE_CHECKING:
    from teeds.config import Settings

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def engine_options(database_url: str, timeout_seconds: int) -> dict:
    options: dict = {"future": True, "pool_pre_ping": True}
    if database_url.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    elif database_url.startswith("sqlite"):
        options["connect_args"] = {"timeout": timeout_seconds}
    return options


def create_session_factory(settings: "Settings") -> sessionmaker:
    engine = create_engine(settings.database_url, **engine_options(settings.database_url, settings.db_timeout_seconds))
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)
