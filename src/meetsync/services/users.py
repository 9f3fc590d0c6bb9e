from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..domain import User

if TYPE_CHECKING:
    from .context import ServiceContext

logger = logging.getLogger(__name__)


class UserError(RuntimeError):
    """Base class for rejected user operations."""


class UnknownUserError(UserError):
    """Raised when no user carries the requested id."""


class DuplicateUserError(UserError):
    """Raised when a name is already registered."""


class InvalidUserError(UserError):
    """Raised when a name or password is missing."""


class PermissionDeniedError(UserError):
    """Raised when a non-admin attempts an admin action."""


def _next_user_id(users: Sequence[User]) -> int:
    return max((user.id for user in users), default=0) + 1


def _append_user(users: List[User], name: str, password: str, is_admin: bool) -> List[User]:
    if not name or not password:
        raise InvalidUserError("Name and password are required")
    if any(user.name == name for user in users):
        raise DuplicateUserError(f"The name {name!r} is already taken")
    return [*users, User(id=_next_user_id(users), name=name, password=password, is_admin=is_admin)]


@dataclass(slots=True)
class UserService:
    context: "ServiceContext"

    def list_users(self) -> List[User]:
        return list(self.context.users.value)

    def get(self, user_id: int) -> User:
        for user in self.context.users.value:
            if user.id == user_id:
                return user
        raise UnknownUserError(f"User {user_id} does not exist")

    def require_admin(self, user_id: int) -> User:
        user = self.get(user_id)
        if not user.is_admin:
            raise PermissionDeniedError(f"{user.name} is not an administrator")
        return user

    def log_in(self, name: str, password: str) -> Optional[User]:
        for user in self.context.users.value:
            if user.name == name and user.password == password:
                return user
        logger.info("Rejected login for %r", name)
        return None

    async def sign_up(self, name: str, password: str) -> User:
        return await self._create(name, password, is_admin=False)

    async def admin_create_user(self, name: str, password: str, *, is_admin: bool = False, admin_id: int) -> User:
        self.require_admin(admin_id)
        return await self._create(name, password, is_admin=is_admin)

    async def _create(self, name: str, password: str, *, is_admin: bool) -> User:
        name = name.strip()
        appended: List[User] = []

        def _register(users: List[User]) -> List[User]:
            updated = _append_user(users, name, password, is_admin)
            appended.append(updated[-1])
            return updated

        task = self.context.users.set_value(_register, immediate=True)
        if task is not None:
            await task
        created = appended[0]
        logger.info("Registered user %r (id=%d, admin=%s)", created.name, created.id, created.is_admin)
        return created
