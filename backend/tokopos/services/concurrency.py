# Overview: Write-path helpers: serialize ledger readers on a document row and replay transient DB failures.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


TRANSIENT_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows a ledger check depends on.

    SQLite accepts the clause and ignores it; its single writer already
    serializes the check-then-insert.
    """
    return query.with_for_update()


def run_with_retry(func, *, label: str = "db-write", attempts: int | None = None):
    """
    Run `func` (which owns its own commit) and replay it on transient failures.

    Deadlocks, lock timeouts and stale version checks roll the session back and
    are retried with exponential backoff; anything else propagates at once.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    backoff = current_app.config.get("DB_RETRY_BACKOFF_SEC", 0.1)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TRANSIENT_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.error("%s-gave-up attempts=%d err=%s", label, attempts, exc)
                raise
            current_app.logger.warning("%s-retry attempt=%d err=%s", label, attempt, exc)
            time.sleep(backoff * (2 ** (attempt - 1)))
