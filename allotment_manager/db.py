from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def get_database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "sqlite:///./allotment.db")
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


class Store:
    """Owns the engine and session factory for one database.

    Built once when the application starts and disposed on shutdown.
    """

    def __init__(self, url: str | None = None) -> None:
        self.url = url or get_database_url()
        connect_args = {"check_same_thread": False} if self.url.startswith("sqlite") else {}
        self.engine = create_engine(self.url, connect_args=connect_args, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        from allotment_manager import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        logger.info("Disposing store for %s", self.url)
        self.engine.dispose()


@contextmanager
def write_batch(db: Session) -> Iterator[Session]:
    """Commit every write made inside the block at once, or none of them."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_db(request: Request) -> Iterator[Session]:
    db = get_store(request).session()
    try:
        yield db
    finally:
        db.close()
