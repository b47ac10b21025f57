from functools import wraps
from flask import current_app, g
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from agency.errors import Unauthenticated
from agency.services.credentials import CredentialStore
from agency.services.policy import AccessContext, Caller, enforce, decide, operation
from agency.services.tokens import claims_from_payload
from agency.constants.domain import Action, ResourceType

FLAG_RECHECK_IDENTITY = 'AUTHZ_RECHECK_IDENTITY'


def load_caller() -> Caller:
    """Caller bound to the verified bearer token of the current request.

    By default the token's embedded role is trusted and the account is treated as
    enabled; with AUTHZ_RECHECK_IDENTITY the stored role and disabled flag win.
    """
    claims = claims_from_payload(get_jwt())
    if not current_app.config.get(FLAG_RECHECK_IDENTITY, False):
        return Caller(id=claims.id, role=claims.role, disabled=False, email=claims.email)
    user = CredentialStore().find_user_by_id(claims.id)
    if user is None:
        raise Unauthenticated(description='Account no longer exists')
    return Caller.from_user(user)


def current_caller() -> Caller:
    caller = getattr(g, 'caller', None)
    if caller is None:
        raise Unauthenticated()
    return caller


def require_auth():
    """Reject the request unless it carries a valid token for an enabled account."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.caller = None
            verify_jwt_in_request()
            caller = load_caller()
            # every enabled identity may read itself; disabled ones are refused here
            enforce(decide(caller, operation(ResourceType.IDENTITY, Action.READ), AccessContext(target_identity_id=caller.id)))
            g.caller = caller
            return fn(*args, **kwargs)
        return wrapper
    return outer
