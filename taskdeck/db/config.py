"""Database configuration for the task store."""
from typing import Generator
import logging

from sqlmodel import create_engine, Session
from sqlalchemy import event

from taskdeck import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

if DATABASE_URL.startswith("postgresql"):
    logger.info("Using PostgreSQL database")
else:
    logger.info(f"Using SQLite database: {DATABASE_URL}")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
