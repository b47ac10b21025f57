"""Error taxonomy for authentication and authorization failures.

Each class is a werkzeug HTTPException so the application-wide handler renders it
with the standard JSON error shape; the ``reason`` attribute is the taxonomy tag
exposed to clients.
"""
from __future__ import annotations
from typing import Any, Dict, Optional, Type
from werkzeug.exceptions import Forbidden, HTTPException, NotFound, Unauthorized

from agency.constants.domain import DenyReason


class ResourceNotFound(LookupError):
    """A resource, or a link in its ownership chain, does not exist."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f'{resource} {resource_id} not found')
        self.resource = resource
        self.resource_id = resource_id


class Unauthenticated(Unauthorized):
    reason = DenyReason.UNAUTHENTICATED.value
    description = 'Authentication required'


class AccountDisabled(Unauthorized):
    reason = DenyReason.ACCOUNT_DISABLED.value
    description = 'Your account has been disabled. Please contact an administrator.'


class AccessForbidden(Forbidden):
    reason = DenyReason.FORBIDDEN.value
    description = 'Access denied'


class SelfModificationForbidden(AccessForbidden):
    reason = DenyReason.SELF_MODIFICATION_FORBIDDEN.value
    description = 'Cannot disable your own account'


class ResourceMissing(NotFound):
    reason = DenyReason.NOT_FOUND.value
    description = 'Resource not found'


EXCEPTION_FOR_REASON: Dict[DenyReason, Type[HTTPException]] = {
    DenyReason.UNAUTHENTICATED: Unauthenticated,
    DenyReason.ACCOUNT_DISABLED: AccountDisabled,
    DenyReason.FORBIDDEN: AccessForbidden,
    DenyReason.SELF_MODIFICATION_FORBIDDEN: SelfModificationForbidden,
    DenyReason.NOT_FOUND: ResourceMissing,
}


def exception_for(reason: DenyReason, detail: Optional[str] = None) -> HTTPException:
    return EXCEPTION_FOR_REASON[reason](description=detail)


def error_payload(status: int, title: str, detail: Optional[str], reason: Optional[str] = None) -> Dict[str, Any]:
    return {
        'error': {
            'status': status,
            'title': title,
            'detail': detail,
            'reason': reason,
        }
    }
