"""Human-readable unique reference numbers for cases and contracts."""

import logging
import secrets
import string
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ALPHABET = string.ascii_uppercase + string.digits
MAX_ATTEMPTS = 5


def new_reference(prefix: str) -> str:
    """{PREFIX}-{epoch ms}-{4 uppercase alphanumerics}, e.g. CASE-1718000000000-7QX2."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def insert_with_reference(db: Session, prefix: str, build: Callable[[str], T]) -> T:
    """Insert a row built around a fresh reference, retrying on a unique collision.

    Args:
        db: Database session
        prefix: CASE or CONTRACT
        build: Returns an unsaved ORM row for a given reference

    Returns:
        The committed, refreshed row

    Raises:
        IntegrityError: Still colliding after MAX_ATTEMPTS
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        row = build(new_reference(prefix))
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "reference.collision",
                extra={"event": "reference.collision", "prefix": prefix, "attempt": attempt},
            )
            if attempt == MAX_ATTEMPTS:
                raise
            continue
        db.refresh(row)
        return row

    raise RuntimeError("unreachable")
