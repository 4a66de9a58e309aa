# Overview: Allocation of human-readable document numbers (order numbers).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import DocumentSequence
from erp.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence allocation fails."""


def next_document_number(session: Session, *, document_type: str, sequence_key: str) -> int:
    """
    Atomically allocate the next number for (document_type, sequence_key).

    Must run inside an open unit of work: the UPDATE takes a row lock that is
    held until the caller commits, so two transactions never receive the
    same number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not sequence_key:
        raise DocumentSequenceError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.sequence_key == sequence_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _current() -> int:
        value = (
            session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, sequence_key=sequence_key)
            .scalar()
        )
        return value - 1

    result = session.execute(stmt)
    if result.rowcount:
        return _current()

    try:
        with session.begin_nested():
            session.add(DocumentSequence(document_type=document_type, sequence_key=sequence_key, next_number=2))
        return 1
    except IntegrityError:
        # Another transaction created the sequence row first
        result = session.execute(stmt)
        if not result.rowcount:
            raise
        return _current()


def next_order_number(session: Session, *, now: datetime | None = None) -> str:
    """Allocate an order number of the form ORD-YYYYMMDD-NNN (per-day sequence)."""
    day = (now or utcnow()).strftime("%Y%m%d")
    number = next_document_number(session, document_type="ORDER", sequence_key=day)
    return f"ORD-{day}-{number:03d}"
