from __future__ import annotations
import logging
from flask import Blueprint, request, abort

from agency import get_db
from agency.constants.domain import ALL_ROLES, Action, ResourceType, Role
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.identity import User
from agency.models.workspace import Workspace
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, operation
from agency.utils.listing import paginated
from agency.utils.validation import json_body, parse_bool, validate_choice, iso

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__)


def user_json(u: User):
    return {
        'id': u.id,
        'email': u.email,
        'name': u.name,
        'role': u.role,
        'disabled': bool(u.disabled),
        'profile': {
            'phone': u.phone,
            'address': u.address,
            'companyName': u.company_name,
            'profilePicture': u.profile_picture,
        },
        'createdAt': iso(u.created_at),
    }


def _prefetch_user(user_id):
    u = get_db().get(User, user_id) if user_id else None
    if not u:
        return {}
    return {'role': u.role, 'disabled': bool(u.disabled)}


@users_bp.get('')
@require_auth()
def list_users():
    caller = current_caller()
    authorize(caller, operation(ResourceType.IDENTITY, Action.LIST))
    q = get_db().query(User)
    role = request.args.get('role')
    if role:
        q = q.filter(User.role == validate_choice(role, ALL_ROLES, 'role'))
    q = q.order_by(User.created_at.asc(), User.id.asc())
    return paginated(q, user_json)


@users_bp.get('/<user_id>')
@require_auth()
def get_user(user_id: str):
    user, ctx = OwnershipResolver().identity_access(user_id)
    authorize(current_caller(), operation(ResourceType.IDENTITY, Action.READ), ctx)
    return user_json(user)


@users_bp.put('/<user_id>')
@require_auth()
@audit_log('USER.UPDATE', entity='User', entity_id_arg='user_id', meta_keys=['role', 'disabled'],
           diff_keys=['role', 'disabled'], pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def update_user(user_id: str):
    caller = current_caller()
    data = json_body()
    changes = {}
    if 'role' in data:
        changes['role'] = validate_choice(data.get('role'), ALL_ROLES, 'role')
    if 'disabled' in data:
        changes['disabled'] = parse_bool(data.get('disabled'), 'disabled')
    if not changes:
        abort(400, description='role or disabled required')
    user, ctx = OwnershipResolver().identity_access(user_id)
    authorize(caller, operation(ResourceType.IDENTITY, Action.UPDATE, changes), ctx)
    if 'role' in changes and changes['role'] != user.role:
        if user.role == Role.CLIENT.value and get_db().query(Workspace).filter(Workspace.client_id == user.id).first():
            abort(400, description='Client still owns workspaces; reassign or delete them first')
        logger.info('Role of user %s changed from %s to %s by %s', user.id, user.role, changes['role'], caller.id)
        user.role = changes['role']
    if 'disabled' in changes and changes['disabled'] != bool(user.disabled):
        logger.info('User %s %s by %s', user.id, 'disabled' if changes['disabled'] else 'enabled', caller.id)
        user.disabled = changes['disabled']
    get_db().commit()
    return user_json(user)
