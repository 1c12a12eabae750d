# Overview: Service-layer helpers for transactions and row locking; shared by every mutating service.

from __future__ import annotations

import time
from typing import Callable, Iterable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")

RETRY_ATTEMPTS = 3
RETRY_BACKOFF_BASE = 0.1


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; version_id_col still
    catches the lost update there.
    """
    return query.with_for_update()


def lock_products(product_ids: Iterable[int], company_id: int | None = None) -> dict:
    """
    Lock a set of product rows in ascending id order and return them by id.

    Taking locks in a fixed order keeps two multi-product transactions
    from deadlocking on each other.
    """
    from ..models import Product

    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = db.session.query(Product).filter(Product.id.in_(ids))
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    rows = lock_for_update(query.order_by(Product.id.asc())).all()
    return {row.id: row for row in rows}


def run_with_retry(
    func: Callable[[], T],
    *,
    attempts: int = RETRY_ATTEMPTS,
    backoff_base: float = RETRY_BACKOFF_BASE,
) -> T:
    """
    Execute one transactional unit of work, retrying on concurrency failures.

    `func` does all its reads and writes and commits at the end. On
    OperationalError (deadlocks, lock timeouts) or StaleDataError
    (version_id mismatch) the session is rolled back and the whole unit
    re-runs from scratch. Any other exception rolls back and propagates,
    so a failed step never leaves earlier steps applied.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (%s), retrying attempt %d/%d",
                type(exc).__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise RuntimeError("run_with_retry called with attempts < 1")
