from contextlib import contextmanager

import structlog
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .errors import ConflictError, DomainError, PersistenceFailure


logger = structlog.get_logger(__name__)

# Configure connection pool for better performance
engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    pool_recycle=3600,  # Recycle connections after 1 hour
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
)

# IMPORTANT: do not use scoped_session with async frameworks; create a fresh Session per request
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, *, action: str, entity: str, entity_id=None):
    """
    Run one entity mutation and its history entries as a single commit.

    Domain errors roll back and propagate unchanged. Store errors roll back
    and surface as PersistenceFailure (or ConflictError for a stale version
    or a unique-key collision).
    """
    try:
        yield db
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except StaleDataError as exc:
        db.rollback()
        logger.warning("stale_write", entity=entity, entity_id=str(entity_id), action=action)
        raise ConflictError(
            entity, entity_id, action,
            "the record was modified concurrently; reload and retry",
        ) from exc
    except IntegrityError as exc:
        # A concurrent writer took the same ledger seq or unique key
        db.rollback()
        logger.warning("integrity_conflict", entity=entity, entity_id=str(entity_id), action=action, error=str(exc))
        raise ConflictError(
            entity, entity_id, action,
            "a conflicting record was written concurrently; reload and retry",
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("persistence_failure", entity=entity, entity_id=str(entity_id), action=action, error=str(exc))
        raise PersistenceFailure(entity, entity_id, action, str(exc)) from exc
    except Exception:
        db.rollback()
        raise
