"""Decorator recording an audit entry for a successful mutating view.

    @audit_log('PROJECT.UPDATE', entity='Project', entity_id_arg='project_id',
               diff_keys=['name', 'assignedEmployeeIds'],
               pre_fetch=lambda a, kw: _project_snapshot(kw['project_id']))
    def update_project(project_id): ...

The view's JSON payload (first element of a (body, status) tuple) supplies the entity
id (``entity_id_key``) and meta values (``meta_keys``); ``pre_fetch`` snapshots the
record before the view runs so ``diff_keys`` can be reported as before/after pairs.
Errors raised by the view propagate untouched and nothing is recorded.
"""
from __future__ import annotations
import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from agency import get_db
from agency.services.audit import add_audit

logger = logging.getLogger(__name__)


def _payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before[k] != after[k]:
            changes[k] = {'before': before[k], 'after': after[k]}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = 'id',
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data = _payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = kwargs.get(entity_id_arg) if entity_id_arg else None
            if entity_id is None and entity_id_key:
                entity_id = data.get(entity_id_key)
            meta = {k: data[k] for k in (meta_keys or ()) if k in data}
            if before:
                changes = _diff(before, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            try:
                add_audit(action, entity, entity_id, meta)
                get_db().commit()
            except Exception:
                logger.warning('Audit write failed for %s', action, exc_info=True)
                get_db().rollback()
            return rv
        return wrapper
    return outer
