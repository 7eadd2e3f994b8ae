# civic_portal/database/store.py

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from civic_portal import db
from civic_portal.errors import TemporarilyUnavailable

logger = logging.getLogger(__name__)


def _backoff_seconds():
    if has_app_context():
        return current_app.config.get('STORE_RETRY_BACKOFF_SECONDS', 0.2)
    return 0.2


def read(query, *args, **kwargs):
    """Run an idempotent read, retrying once after a short backoff."""
    try:
        return query(*args, **kwargs)
    except OperationalError as e:
        db.session.rollback()
        logger.warning(f"Store read failed, retrying once: {e.orig!r}")
        time.sleep(_backoff_seconds())
    try:
        return query(*args, **kwargs)
    except OperationalError as e:
        db.session.rollback()
        logger.error(f"Store read failed after retry: {e.orig!r}")
        raise TemporarilyUnavailable()


def write(mutation, *args, **kwargs):
    """Run a mutation and commit. Never retried: callers rely on upserts for idempotence."""
    try:
        result = mutation(*args, **kwargs)
        db.session.commit()
        return result
    except OperationalError as e:
        db.session.rollback()
        logger.error(f"Store write failed: {e.orig!r}")
        raise TemporarilyUnavailable()
    except Exception:
        db.session.rollback()
        raise


def commit():
    """Flush pending changes to tracked rows."""
    return write(lambda: None)
