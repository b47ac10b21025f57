from __future__ import annotations
import logging
from typing import Optional
from sqlalchemy import select, func

from agency import get_db
from agency.constants.domain import Role
from agency.models.identity import User

logger = logging.getLogger(__name__)


class EmailAlreadyRegistered(ValueError):
    pass


def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ''
    return email.strip().lower()


class CredentialStore:
    """Read/write port over persisted identities.

    The authorization core only calls the two finders; registration lives here so the
    first-identity-becomes-admin rule has a single home.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else get_db()

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.session.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()

    def find_user_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.session.get(User, str(user_id))

    def count_users(self) -> int:
        return self.session.execute(select(func.count(User.id))).scalar_one()

    def register(self, email: str, name: str, password: str) -> User:
        """Create an identity; the very first one becomes admin, later ones client.

        Does not commit; the caller owns the transaction.
        """
        email = normalize_email(email)
        if self.find_user_by_email(email):
            raise EmailAlreadyRegistered(email)
        role = Role.ADMIN if self.count_users() == 0 else Role.CLIENT
        user = User(email=email, name=name, role=role.value, disabled=False, password_hash='')
        user.set_password(password)
        self.session.add(user)
        self.session.flush()
        logger.info('Registered identity %s with role %s', user.id, role.value)
        return user


__all__ = ['CredentialStore', 'EmailAlreadyRegistered', 'normalize_email']
