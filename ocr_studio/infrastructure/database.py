"""SQLAlchemy wiring for the history table."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class HistoryRow(Base):
    """Upload and processing history, one row per uploaded document."""

    __tablename__ = "file_history"
    # Without AUTOINCREMENT SQLite hands out a deleted max id again.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    file_name = Column(String(512), nullable=False, index=True)
    file_size = Column(Integer, nullable=False)
    file_type = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default="pending", index=True)
    result = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<HistoryRow {self.id} {self.file_name} ({self.status})>"


def build_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # Processing runs gateway calls from worker threads.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, future=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create tables if needed and return a session factory bound to ``engine``."""

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)
