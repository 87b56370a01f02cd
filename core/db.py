from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.log import get_logger
from core.events import log_event, E
from core.models import Base

logger = get_logger(__name__)


class Database:
    """Owns the engine and session factory.

    Constructed once by the application entry point (or a test) and handed
    to whoever needs sessions; nothing connects at import time.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = str(url or "sqlite://")
        kwargs = {"echo": echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, otherwise every session sees an empty DB
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)
        log_event(logger, E.SYSTEM_DB_INIT, url=self.url.split("@")[-1])

    def get_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
