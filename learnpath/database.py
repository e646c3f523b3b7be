"""
Database engine, session factory and declarative base
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from learnpath.config import settings

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DEBUG,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db():
    """Create all tables"""
    # Registers every model on Base.metadata
    import learnpath.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_ignore(
    db: Session,
    model,
    rows: Sequence[Dict[str, Any]],
    index_elements: List[str],
) -> None:
    """
    INSERT ... ON CONFLICT DO NOTHING for the given rows

    Used for create-on-first-access rows so two concurrent first accesses
    never produce duplicates.
    """
    if not rows:
        return

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise RuntimeError(f"Upsert not supported for dialect '{dialect}'")

    stmt = insert(model).values(list(rows)).on_conflict_do_nothing(
        index_elements=index_elements
    )
    db.execute(stmt)
