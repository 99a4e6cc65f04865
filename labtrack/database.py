from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from sqlalchemy.orm.exc import StaleDataError
from labtrack.config import settings
from labtrack.utils.exceptions import ConcurrencyException
import logging

logger = logging.getLogger(__name__)

# SQLSTATE codes PostgreSQL uses for serialization failure / deadlock
RETRYABLE_SQLSTATES = {"40001", "40P01"}


# ─── Engine ────────────────────────────────────────────────────────────────────
def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        return {
            "connect_args": {"check_same_thread": False},
            "echo": settings.DATABASE_ECHO,
        }
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
        "pool_pre_ping": True,   # Detect stale connections before using them
        "echo": settings.DATABASE_ECHO,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs())


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)


# ─── Session Factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,      # Avoid DetachedInstanceError after commit
)


# ─── Base Model ────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.
    All models in labtrack/models/ should inherit from this class.
    """
    pass


# ─── Dependency Injection ──────────────────────────────────────────────────────
def get_db():
    """
    FastAPI dependency that provides a database session per request.
    Automatically closes session after request completes.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ─── Unit of Work ──────────────────────────────────────────────────────────────
def is_retryable(exc: DBAPIError) -> bool:
    return getattr(exc.orig, "pgcode", None) in RETRYABLE_SQLSTATES


@contextmanager
def atomic(db: Session):
    """
    Run a workflow mutation as a single transaction.

    Ledger transfers and workflow record writes issued inside the block commit
    together on exit; any exception rolls all of them back. A lost update on a
    versioned workflow record (or a serialization failure reported by the
    database) surfaces as ConcurrencyException so the caller can retry.

    Usage:
        with atomic(db):
            ledger.transfer(db, ...)
            record.status = ...
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent update detected: {e}")
        raise ConcurrencyException() from e
    except DBAPIError as e:
        db.rollback()
        if is_retryable(e):
            logger.warning(f"Serialization failure: {e.orig}")
            raise ConcurrencyException() from e
        raise
    except Exception:
        db.rollback()
        raise


# ─── Health Check ──────────────────────────────────────────────────────────────
def check_db_connection() -> bool:
    """Verify database is reachable. Used at startup."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
