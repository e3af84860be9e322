"""
Commit helper shared by the resource services.

Every mutation ends with ``commit(...)``: on failure the session is rolled
back and the error is logged before propagating. A unique constraint hit
by a concurrent writer (the validator passed, the insert lost the race)
surfaces as ConflictError instead of a bare 500.
"""

import logging

from sqlalchemy.exc import IntegrityError

from taskhub.core.exceptions import ConflictError
from taskhub.models import db

logger = logging.getLogger(__name__)


def commit(action: str, resource: str):
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error during %s %s: %s", action, resource, exc.orig)
        raise ConflictError(
            resource, "unique", message=f"{resource} conflicts with an existing record",
        ) from exc
    except Exception:
        db.session.rollback()
        logger.exception("Database error during %s %s", action, resource)
        raise
