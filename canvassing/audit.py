"""
canvassing/audit.py

Audit trail helper.

Records WHO did WHAT to WHICH entity, with before/after snapshots, the
username at the time and the client IP.

IMPORTANT:
- log_action() only ADDS an AuditLog row to the current SQLAlchemy session.
  The calling route owns the transaction (store.commit()).
- Audit runs server-side on every mutation; the client is never trusted.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

logger = logging.getLogger(__name__)


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for JSON columns; None stays None."""
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Column snapshot of a SQLAlchemy model instance.

    Scalar columns only (no relationships). JSON columns are skipped; the
    canvass snapshot is audited through its own summary instead.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if isinstance(column.type, db.JSON):
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    key: Optional[str] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: flushed model instance (must have an id)
        action: CREATE / UPDATE / STATUS / START / ADVANCE / SIGN ...
        before, after: dict snapshots (optional)
        key: business key shown in audit screens, e.g. the PR number

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. Behind a reverse proxy, configure
      ProxyFix so the real client IP is recorded.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    authenticated = bool(current_user and current_user.is_authenticated)

    entry = AuditLog(
        user_id=current_user.id if authenticated else None,
        username_snapshot=current_user.username if authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        entity_key=key,
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False, default=str) if before else None,
        after_data=json.dumps(after, ensure_ascii=False, default=str) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    logger.debug("audit %s %s#%s", action, entry.entity_type, entity_id)
    return entry
