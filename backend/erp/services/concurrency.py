# Overview: Transaction and row-locking helpers shared by the ledger and order services.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead (BEGIN IMMEDIATE).
    """
    return query.with_for_update()


def _begin_write(session: Session) -> None:
    conn = session.connection()
    if conn.dialect.name != "sqlite":
        return
    # pysqlite defers BEGIN until the first DML statement, which lets two
    # writers read the same quantity before either holds the lock.
    raw = conn.connection.driver_connection
    if not raw.in_transaction:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Run a block of ledger/order work as one database transaction.

    Commits when the block exits normally. Any exception rolls back every
    write made inside the block (ledger rows and quantity changes together)
    and is re-raised for the caller to translate. No retries: a lock or
    version conflict surfaces as an error.
    """
    try:
        _begin_write(session)
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
