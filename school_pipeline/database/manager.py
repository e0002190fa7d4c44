"""
Database Manager
Datenbankverbindung und Sessions mit SQLAlchemy
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import Settings, settings as default_settings
from .schema import Base


class DatabaseError(RuntimeError):
    """Fehler bei einer Datenbankoperation"""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        super().__init__(f"database error during {operation}: {cause}")
        self.operation = operation
        self.cause = cause


class DatabaseManager:
    """Datenbankverwaltung mit SQLAlchemy (SQLite oder PostgreSQL)"""

    def __init__(self, settings: Optional[Settings] = None, *, database_url: Optional[str] = None):
        self.settings = settings or default_settings
        self.database_url = database_url or self.settings.database_url
        self.engine = None
        self.SessionLocal = None
        self.logger = logging.getLogger(__name__)

    def _engine_args(self) -> dict[str, Any]:
        url = make_url(self.database_url)
        args: dict[str, Any] = {"echo": self.settings.database_echo, "future": True}
        if url.get_backend_name() == "sqlite":
            args["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                # one shared connection, otherwise every session sees a new empty db
                args["poolclass"] = StaticPool
            elif url.database:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            args["pool_size"] = self.settings.database_pool_size
            args["pool_pre_ping"] = True
        return args

    def initialize(self):
        """Initialisiert Engine und SessionFactory; Verbindungsfehler sind fatal"""
        try:
            self.engine = create_engine(self.database_url, **self._engine_args())
            self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)
            # Leichter Verbindungscheck
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.logger.info(f"Database engine initialized ({self.engine.dialect.name})")
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to initialize database: {e}")
            self.engine = None
            self.SessionLocal = None
            raise DatabaseError("connect", e) from e

    def get_session(self) -> Session:
        """Gibt eine neue SQLAlchemy Session zurück"""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.SessionLocal()

    @contextmanager
    def transaction(self, operation: str) -> Iterator[Session]:
        """Session in einer Transaktion; SQLAlchemy-Fehler werden zu DatabaseError"""
        session = self.get_session()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as e:
            self.logger.error(f"Database operation '{operation}' failed: {e}")
            raise DatabaseError(operation, e) from e
        finally:
            session.close()

    def create_tables(self):
        """Erstellt alle Tabellen"""
        if not self.engine:
            raise RuntimeError("Database not initialized")

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise DatabaseError("create tables", e) from e
        self.logger.info("Database tables created")

    def close(self):
        """Schließt alle Datenbankverbindungen"""
        if self.engine:
            self.engine.dispose()
            self.logger.info("Database engine disposed")
        self.engine = None
        self.SessionLocal = None
