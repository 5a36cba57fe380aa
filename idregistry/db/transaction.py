"""
Explicit transaction ownership for engine operations.

Every mutating operation takes an optional `Transaction`. When the caller
passes none, the operation opens one, owns it, and commits or rolls it back
on exit. When the caller passes one, the operation joins it and leaves the
outcome to the owner, so nested calls (for example cancellations issued by
the allocator) never commit half of a request.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from idregistry.core.errors import RegistryError

logger = logging.getLogger(__name__)


@dataclass
class Transaction:
    session: Session
    owned: bool = False


@contextmanager
def transaction_scope(
    db: Session,
    tx: Transaction | None = None,
    *,
    name: str = "operation",
) -> Iterator[Transaction]:
    if tx is not None:
        if tx.session is not db:
            raise RegistryError.internal(
                "Transaction handle is bound to a different session."
            )
        yield tx
        return

    owned = Transaction(session=db, owned=True)
    try:
        yield owned
        db.commit()
    except IntegrityError as exc:
        logger.info("transaction_rollback operation=%s constraint_violation", name)
        db.rollback()
        raise RegistryError.conflict(
            f"Operation {name} violates a uniqueness or reference constraint: {exc.orig}"
        ) from exc
    except Exception:
        logger.info("transaction_rollback operation=%s", name)
        db.rollback()
        raise

