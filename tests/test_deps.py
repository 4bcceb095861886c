import json
import logging
from io import StringIO

from sqlalchemy import select

from bookledger.api.deps import log_action
from bookledger.core.logging import configure_logging, reset_logging
from bookledger.models.audit import AuditLog
from bookledger.models.user import User


def test_audit_row_is_written(db_session, owner):
    log_action(db_session, owner.id, "create", "expense", "Software 12.00")
    [entry] = db_session.scalars(select(AuditLog)).all()
    assert (entry.action, entry.resource, entry.detail) == ("create", "expense", "Software 12.00")


def test_failed_audit_write_is_logged_not_raised(db_session, owner):
    reset_logging()
    stream = StringIO()
    configure_logging("INFO", handler=logging.StreamHandler(stream))
    try:
        log_action(db_session, owner.id, None, "expense")
    finally:
        reset_logging()

    assert db_session.scalars(select(AuditLog)).all() == []
    assert db_session.scalar(select(User.email)) == "owner@example.com"
    [record] = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert record["message"] == "Audit log write failed"
    assert record["resource"] == "expense"
