from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g, has_request_context

from agency import get_db
from agency.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None):
    """Stage an audit entry in the current session; the caller's commit makes it durable.

    action: dotted code such as WORKSPACE.CREATE or USER.UPDATE
    meta: JSON-safe dictionary, shallow copied
    """
    caller = getattr(g, 'caller', None) if has_request_context() else None
    log = AuditLog(
        actor_user_id=caller.id if caller else None,
        actor_role=caller.role.value if caller else None,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(log)
    return log
