from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import Settings
from .errors import ClinicError, InfrastructureError, TransactionFailedError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base ORM per tutti i modelli."""
    pass


def _sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite non applica le FK se non richiesto esplicitamente, per ogni connessione
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Engine + pool di connessioni + factory di sessioni.

    Viene creato all'avvio dell'applicazione e chiuso allo shutdown
    (`dispose`); chi ne ha bisogno lo riceve esplicitamente.
    """

    def __init__(self, url: str, echo: bool = False, pool_pre_ping: bool = True) -> None:
        connect_args: dict = {}
        if url.startswith("sqlite"):
            # le richieste FastAPI sync girano nel threadpool
            connect_args["check_same_thread"] = False

        self.engine: Engine = create_engine(
            url,
            echo=echo,
            future=True,
            pool_pre_ping=pool_pre_ping,
            connect_args=connect_args,
        )
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            future=True,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.db_echo, pool_pre_ping=settings.db_pool_pre_ping)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Crea le tabelle se non esistono."""
        # import per registrare i modelli nel metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Pool di connessioni chiuso")

    @contextmanager
    def db_session(self, failure_message: str, always_expose_details: bool = False) -> Iterator[Session]:
        """
        Unità di lavoro su una sola connessione presa dal pool:
        - InfrastructureError se la connessione non si ottiene (nessuna transazione aperta)
        - commit se tutto ok
        - rollback su eccezioni; gli errori applicativi (ClinicError) risalgono invariati,
          gli altri diventano TransactionFailedError con l'errore primario e quello del rollback
        - close (rilascio al pool) sempre
        """
        session: Session = self.SessionLocal()
        try:
            # forza il checkout della connessione prima di eseguire qualsiasi statement
            session.connection()
        except SQLAlchemyError as exc:
            logger.error("Connessione al database non disponibile: %s", exc)
            self._release(session)
            raise InfrastructureError("Database connection unavailable", cause=exc) from exc

        try:
            yield session
            session.commit()
        except ClinicError:
            self._rollback(session)
            raise
        except Exception as exc:
            rollback_error = self._rollback(session)
            raise TransactionFailedError(
                failure_message,
                cause=exc,
                rollback_error=rollback_error,
                always_expose_details=always_expose_details,
            ) from exc
        finally:
            self._release(session)

    @staticmethod
    def _rollback(session: Session) -> SQLAlchemyError | None:
        try:
            session.rollback()
        except SQLAlchemyError as exc:
            logger.error("Errore durante il rollback della transazione: %s", exc)
            return exc
        return None

    @staticmethod
    def _release(session: Session) -> None:
        try:
            session.close()
        except SQLAlchemyError as exc:
            # il rilascio fallito non deve mascherare l'esito già determinato
            logger.error("Errore durante il rilascio della connessione: %s", exc)
