"""Closed vocabularies shared by the models, the authorization engine and the routes.
Role and status values are persisted as their string value; never rename one in place.
"""
from __future__ import annotations
from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    ADMIN = 'admin'
    EMPLOYEE = 'employee'
    CLIENT = 'client'


class ResourceType(str, Enum):
    IDENTITY = 'identity'
    WORKSPACE = 'workspace'
    PROJECT = 'project'
    TASK = 'task'
    COMMENT = 'comment'
    PAYMENT = 'payment'
    REVENUE = 'revenue'


class Action(str, Enum):
    READ = 'read'
    LIST = 'list'
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'


class DenyReason(str, Enum):
    UNAUTHENTICATED = 'Unauthenticated'
    ACCOUNT_DISABLED = 'AccountDisabled'
    FORBIDDEN = 'Forbidden'
    NOT_FOUND = 'NotFound'
    SELF_MODIFICATION_FORBIDDEN = 'SelfModificationForbidden'


class ListScope(str, Enum):
    """Row filter a listing endpoint applies for a caller."""
    ALL = 'all'
    OWNED = 'owned'          # rows whose owning client is the caller
    ASSIGNED = 'assigned'    # rows reachable through a project assignment
    PAYEE = 'payee'          # payments addressed to the caller
    NONE = 'none'


ALL_ROLES: FrozenSet[str] = frozenset(r.value for r in Role)

TASK_STATUSES = ('not-started', 'in-progress', 'needs-review', 'completed')
TASK_STATUS_DEFAULT = 'not-started'

CURRENCIES = ('USD', 'EUR', 'GBP', 'CAD', 'AUD')
DEFAULT_CURRENCY = 'USD'

# Identity fields a holder may edit on their own record; anything else is admin-only.
PROFILE_FIELDS: FrozenSet[str] = frozenset({'name', 'phone', 'address', 'companyName', 'profilePicture', 'password'})
# Project field only an admin may write.
PROJECT_ADMIN_FIELDS: FrozenSet[str] = frozenset({'assignedEmployeeIds'})

PASSWORD_MIN_LENGTH = 6
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
