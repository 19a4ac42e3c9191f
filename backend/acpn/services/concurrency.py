# Overview: Retry helpers for commits that can hit transient lock or stale-row errors.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (e.g. "database is locked") and
    StaleDataError. The session is rolled back before each retry, so
    `func` must rebuild its changes from scratch.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning("Retrying after transient DB error (attempt %s)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
