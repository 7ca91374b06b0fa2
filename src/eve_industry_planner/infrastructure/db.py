from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


def make_session_factory(db_uri: str, *, metadata: Optional[Any] = None) -> sessionmaker:
    """Engine + sessionmaker for one database. `metadata` tables are created if missing."""

    engine_kwargs: dict[str, Any] = dict(echo=False, future=True)
    if db_uri.startswith("sqlite"):
        # Sessions are opened per call from Flask worker threads.
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(db_uri, **engine_kwargs)
    if metadata is not None:
        metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
