# Overview: Transaction boundary for core operations: locking, retry, rollback and error mapping.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StockbillError, StorageUnavailableError, TransactionFailedError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() takes the
    database write lock there instead.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """Take the SQLite write lock up front so concurrent writers serialize."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, label: str, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` as one atomic unit and commit it.

    `func` does its reads/writes through db.session and must not commit.
    Outcomes:
    - success: committed, func's return value is returned
    - StockbillError raised by func: rolled back, re-raised unchanged
    - lock/optimistic conflicts: retried, then TransactionFailedError
    - connection loss: StorageUnavailableError
    - any other database error: TransactionFailedError

    Storage details are logged, never put in the raised message.
    """
    def _op():
        begin_immediate()
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except StockbillError:
        db.session.rollback()
        raise
    except (DisconnectionError, InterfaceError) as exc:
        db.session.rollback()
        current_app.logger.exception("Storage unavailable during %s", label)
        raise StorageUnavailableError("Storage unavailable") from exc
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        if getattr(exc, "connection_invalidated", False):
            current_app.logger.exception("Storage unavailable during %s", label)
            raise StorageUnavailableError("Storage unavailable") from exc
        current_app.logger.exception("Transaction failed during %s", label)
        raise TransactionFailedError(f"Transaction failed: {label}") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Transaction failed during %s", label)
        raise TransactionFailedError(f"Transaction failed: {label}") from exc

