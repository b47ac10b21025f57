from __future__ import annotations
import logging
from flask import Blueprint, abort

from agency import get_db
from agency.constants.domain import (
    Action,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MIN_LENGTH,
    ResourceType,
)
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.errors import AccountDisabled, Unauthenticated
from agency.routes.users import user_json
from agency.services.credentials import CredentialStore, EmailAlreadyRegistered, normalize_email
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, operation
from agency.services.tokens import issue_for_user
from agency.utils.validation import clean_text, json_body, require_text, validate_email, validate_length

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

# request key -> User attribute
PROFILE_ATTRS = {
    'name': 'name',
    'phone': 'phone',
    'address': 'address',
    'companyName': 'company_name',
    'profilePicture': 'profile_picture',
}


def _password(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or len(value) < PASSWORD_MIN_LENGTH:
        abort(400, description=f'{key} must be at least {PASSWORD_MIN_LENGTH} characters')
    return value


def _session_payload(user):
    return {'token': issue_for_user(user), 'user': user_json(user)}


def _self_context(caller):
    user, ctx = OwnershipResolver().identity_access(caller.id)
    if user is None:
        raise Unauthenticated(description='Account no longer exists')
    return user, ctx


@auth_bp.post('/signup')
def signup():
    data = json_body()
    email = validate_email(normalize_email(data.get('email')))
    password = _password(data, 'password')
    name = validate_length(require_text(data, 'name'), NAME_MIN_LENGTH, NAME_MAX_LENGTH, 'name')
    store = CredentialStore()
    try:
        user = store.register(email, name, password)
    except EmailAlreadyRegistered:
        abort(400, description='Email already registered')
    get_db().commit()
    return _session_payload(user), 201


@auth_bp.post('/login')
def login():
    data = json_body()
    email = data.get('email')
    password = data.get('password')
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        abort(400, description='email and password required')
    user = CredentialStore().find_user_by_email(email)
    if not user or not user.verify_password(password):
        logger.info('Failed login attempt')
        raise Unauthenticated(description='Invalid email or password')
    if user.disabled:
        logger.info('Login refused for disabled user %s', user.id)
        raise AccountDisabled()
    return _session_payload(user)


@auth_bp.get('/me')
@require_auth()
def me():
    caller = current_caller()
    user, ctx = _self_context(caller)
    authorize(caller, operation(ResourceType.IDENTITY, Action.READ), ctx)
    return {'user': user_json(user)}


@auth_bp.post('/change-password')
@require_auth()
@audit_log('USER.PASSWORD.CHANGE', entity='User', entity_id_key='id')
def change_password():
    caller = current_caller()
    data = json_body()
    old = data.get('oldPassword')
    new = _password(data, 'newPassword')
    user, ctx = _self_context(caller)
    authorize(caller, operation(ResourceType.IDENTITY, Action.UPDATE, {'password': True}), ctx)
    if not isinstance(old, str) or not user.verify_password(old):
        abort(400, description='Current password is incorrect')
    user.set_password(new)
    get_db().commit()
    return {'id': user.id, 'message': 'Password updated'}


@auth_bp.put('/profile')
@require_auth()
@audit_log('USER.PROFILE.UPDATE', entity='User', entity_id_key='id', meta_keys=['name'])
def update_profile():
    caller = current_caller()
    data = json_body()
    changes = {k: data[k] for k in PROFILE_ATTRS if k in data}
    if not changes:
        abort(400, description='No profile fields supplied')
    user, ctx = _self_context(caller)
    authorize(caller, operation(ResourceType.IDENTITY, Action.UPDATE, changes), ctx)
    for key, value in changes.items():
        if key == 'name':
            value = validate_length(require_text(changes, 'name'), NAME_MIN_LENGTH, NAME_MAX_LENGTH, 'name')
        elif key == 'profilePicture':
            # data URLs and links are stored verbatim
            value = value if isinstance(value, str) and value else None
        else:
            value = clean_text(value, key) or None
        setattr(user, PROFILE_ATTRS[key], value)
    get_db().commit()
    return user_json(user)
