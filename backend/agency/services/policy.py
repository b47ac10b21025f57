"""Authorization engine: one decision table for every resource endpoint.

``decide`` is a pure function of (caller, operation, access context). It never
touches the database; the ownership resolver gathers the facts it evaluates.
Routes call ``authorize`` which raises the mapped HTTP error on deny.

Evaluation order:
  1. no caller                    -> Unauthenticated
  2. caller.disabled              -> AccountDisabled (overrides role)
  3. target or ancestor missing   -> NotFound for admin, Forbidden otherwise
                                     (non-admins cannot probe for existence)
  4. admin                        -> allow, except disabling their own account
  5. per-resource table for employee / client
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from agency.constants.domain import (
    Action,
    DenyReason,
    ListScope,
    PROFILE_FIELDS,
    PROJECT_ADMIN_FIELDS,
    ResourceType,
    Role,
)
from agency.errors import exception_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    id: str
    role: Role
    disabled: bool = False
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> 'Caller':
        return cls(id=user.id, role=user.role_enum, disabled=bool(user.disabled), email=user.email)


@dataclass(frozen=True)
class Operation:
    resource: ResourceType
    action: Action
    # requested field changes for UPDATE operations, keyed by API field name
    changes: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __str__(self):
        return f'{self.resource.value}.{self.action.value}'


@dataclass(frozen=True)
class AccessContext:
    """Facts about the target resource, established by the ownership resolver."""
    found: bool = True
    owner_client_id: Optional[str] = None
    assigned_employee_ids: FrozenSet[str] = frozenset()
    workspace_employee_ids: FrozenSet[str] = frozenset()
    payment_employee_id: Optional[str] = None
    target_identity_id: Optional[str] = None


MISSING = AccessContext(found=False)
NO_CONTEXT = AccessContext()


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    detail: Optional[str] = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


def deny(reason: DenyReason = DenyReason.FORBIDDEN, detail: Optional[str] = None) -> Decision:
    return Decision(False, reason, detail)


def _verdict(ok: bool) -> Decision:
    return ALLOW if ok else deny()


# --- helpers over the context ---

def _owns(caller: Caller, ctx: AccessContext) -> bool:
    return ctx.owner_client_id is not None and ctx.owner_client_id == caller.id


def _assigned(caller: Caller, ctx: AccessContext) -> bool:
    return caller.id in ctx.assigned_employee_ids


def has_project_access(caller: Caller, ctx: AccessContext) -> bool:
    if caller.role is Role.ADMIN:
        return True
    if caller.role is Role.CLIENT:
        return _owns(caller, ctx)
    if caller.role is Role.EMPLOYEE:
        return _assigned(caller, ctx)
    return False


# --- per-resource tables (caller is neither admin nor disabled here) ---

def _workspace(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action is Action.LIST:
        return ALLOW
    if op.action is Action.READ:
        if caller.role is Role.CLIENT:
            return _verdict(_owns(caller, ctx))
        return _verdict(caller.id in ctx.workspace_employee_ids)
    return deny()


def _project(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action is Action.LIST:
        return ALLOW
    if op.action is Action.READ:
        return _verdict(has_project_access(caller, ctx))
    if caller.role is not Role.CLIENT:
        return deny()
    if op.action in (Action.CREATE, Action.UPDATE):
        if PROJECT_ADMIN_FIELDS.intersection(op.changes):
            return deny(detail='Only an administrator may change project assignments')
        # for CREATE the context describes the target workspace
        return _verdict(_owns(caller, ctx))
    return deny()


def _task(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action in (Action.READ, Action.LIST):
        return _verdict(has_project_access(caller, ctx))
    if op.action is Action.UPDATE and caller.role is Role.EMPLOYEE:
        return _verdict(_assigned(caller, ctx))
    # creation and deletion are admin-only; clients read and comment only
    return deny()


def _comment(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action in (Action.READ, Action.LIST, Action.CREATE):
        return _verdict(has_project_access(caller, ctx))
    return deny()


def _payment(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action is Action.LIST:
        # rows are narrowed by list_scope; a client simply sees nothing
        return ALLOW
    if op.action is Action.READ and caller.role is Role.EMPLOYEE:
        return _verdict(ctx.payment_employee_id == caller.id)
    return deny()


def _revenue(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if op.action is Action.LIST:
        return ALLOW
    return deny()


def _identity(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    is_self = ctx.target_identity_id is not None and ctx.target_identity_id == caller.id
    if op.action is Action.READ:
        return _verdict(is_self)
    if op.action is Action.UPDATE:
        return _verdict(is_self and bool(op.changes) and set(op.changes) <= PROFILE_FIELDS)
    return deny()


TABLES: Dict[ResourceType, Callable[[Caller, Operation, AccessContext], Decision]] = {
    ResourceType.WORKSPACE: _workspace,
    ResourceType.PROJECT: _project,
    ResourceType.TASK: _task,
    ResourceType.COMMENT: _comment,
    ResourceType.PAYMENT: _payment,
    ResourceType.REVENUE: _revenue,
    ResourceType.IDENTITY: _identity,
}


def _admin(caller: Caller, op: Operation, ctx: AccessContext) -> Decision:
    if (
        op.resource is ResourceType.IDENTITY
        and op.action is Action.UPDATE
        and ctx.target_identity_id == caller.id
        and op.changes.get('disabled')
    ):
        return deny(DenyReason.SELF_MODIFICATION_FORBIDDEN)
    return ALLOW


def decide(caller: Optional[Caller], op: Operation, context: AccessContext = NO_CONTEXT) -> Decision:
    if caller is None:
        return deny(DenyReason.UNAUTHENTICATED)
    if caller.disabled:
        return deny(DenyReason.ACCOUNT_DISABLED)
    if not context.found:
        return deny(DenyReason.NOT_FOUND if caller.role is Role.ADMIN else DenyReason.FORBIDDEN)
    if caller.role is Role.ADMIN:
        return _admin(caller, op, context)
    table = TABLES.get(op.resource)
    if table is None:
        return deny()
    return table(caller, op, context)


LIST_SCOPES: Dict[Tuple[ResourceType, Role], ListScope] = {
    (ResourceType.WORKSPACE, Role.CLIENT): ListScope.OWNED,
    (ResourceType.WORKSPACE, Role.EMPLOYEE): ListScope.ASSIGNED,
    (ResourceType.PROJECT, Role.CLIENT): ListScope.OWNED,
    (ResourceType.PROJECT, Role.EMPLOYEE): ListScope.ASSIGNED,
    (ResourceType.PAYMENT, Role.EMPLOYEE): ListScope.PAYEE,
}


def list_scope(caller: Caller, resource: ResourceType) -> ListScope:
    """Which rows of a top-level listing the caller may see.

    Tasks and comments are listed beneath an already-authorized parent, so their
    scope is the whole parent.
    """
    if caller.disabled:
        return ListScope.NONE
    if caller.role is Role.ADMIN:
        return ListScope.ALL
    if resource in (ResourceType.TASK, ResourceType.COMMENT):
        return ListScope.ALL
    return LIST_SCOPES.get((resource, caller.role), ListScope.NONE)


def enforce(decision: Decision):
    if not decision.allowed:
        raise exception_for(decision.reason or DenyReason.FORBIDDEN, decision.detail)
    return decision


def authorize(caller: Optional[Caller], op: Operation, context: AccessContext = NO_CONTEXT) -> Decision:
    """decide() and raise the mapped HTTP error on deny."""
    decision = decide(caller, op, context)
    if not decision.allowed:
        logger.info(
            'Denied %s for caller=%s role=%s reason=%s',
            op, caller.id if caller else None, caller.role.value if caller else None, decision.reason.value,
        )
    return enforce(decision)


def operation(resource: ResourceType, action: Action, changes: Optional[Mapping[str, Any]] = None) -> Operation:
    return Operation(resource, action, dict(changes or {}))


__all__ = [
    'Caller', 'Operation', 'AccessContext', 'Decision', 'MISSING', 'NO_CONTEXT',
    'decide', 'authorize', 'enforce', 'list_scope', 'has_project_access', 'operation',
]
