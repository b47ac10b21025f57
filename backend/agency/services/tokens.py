"""Session token codec.

Tokens are HS256 JWTs: base64url header and claims segments signed with the
process-wide ``JWT_SECRET_KEY``. Signing, constant-time signature comparison and
expiry checks are delegated to flask-jwt-extended / PyJWT; this module fixes the
claim set ({id, email, role} plus issued/expiry timestamps) and maps every
verification failure onto ``Unauthenticated``.

Claims are trusted for the token's lifetime: role changes and disabling an
account are only observed once the holder re-authenticates, unless the
``AUTHZ_RECHECK_IDENTITY`` flag is enabled (see decorators.auth).

All functions need an application context.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import jwt as pyjwt
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

from agency.constants.domain import Role
from agency.errors import Unauthenticated

logger = logging.getLogger(__name__)

TOKEN_SEGMENTS = 3


@dataclass(frozen=True)
class SessionClaims:
    id: str
    email: str
    role: Role
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def issue_token(claims: SessionClaims, lifetime: Optional[timedelta] = None) -> str:
    """Sign ``claims`` into a bearer token.

    ``lifetime`` overrides the configured session lifetime (JWT_ACCESS_TOKEN_EXPIRES).
    """
    kwargs = {}
    if lifetime is not None:
        kwargs['expires_delta'] = lifetime
    return create_access_token(
        identity=str(claims.id),
        additional_claims={'id': str(claims.id), 'email': claims.email, 'role': claims.role.value},
        **kwargs,
    )


def issue_for_user(user) -> str:
    return issue_token(SessionClaims(id=user.id, email=user.email, role=user.role_enum))


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def claims_from_payload(payload: Mapping[str, Any]) -> SessionClaims:
    """Build SessionClaims from a decoded JWT payload, rejecting incomplete ones."""
    subject = payload.get('id') or payload.get('sub')
    email = payload.get('email')
    try:
        role = Role(payload.get('role'))
    except ValueError:
        raise Unauthenticated(description='Token carries an unknown role')
    if not subject or not email:
        raise Unauthenticated(description='Token is missing identity claims')
    return SessionClaims(
        id=str(subject),
        email=email,
        role=role,
        issued_at=_timestamp(payload.get('iat')),
        expires_at=_timestamp(payload.get('exp')),
    )


def verify_token(token: str) -> SessionClaims:
    """Return the claims of a valid, unexpired token or raise Unauthenticated."""
    if not isinstance(token, str) or len(token.split('.')) != TOKEN_SEGMENTS:
        raise Unauthenticated(description='Malformed token')
    try:
        payload = decode_token(token)
    except pyjwt.ExpiredSignatureError:
        logger.info('Rejected expired session token')
        raise Unauthenticated(description='Token has expired')
    except (pyjwt.InvalidTokenError, JWTExtendedException) as e:
        logger.info('Rejected invalid session token: %s', e.__class__.__name__)
        raise Unauthenticated(description='Invalid token')
    return claims_from_payload(payload)


__all__ = ['SessionClaims', 'issue_token', 'issue_for_user', 'verify_token', 'claims_from_payload']
