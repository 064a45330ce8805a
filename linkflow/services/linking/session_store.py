"""
Session store: known users and the active one.

A purely numeric input is first tried as a user id; anything else, or an
id the backend does not know, becomes the username of a new user.
"""

import re
from typing import Optional, Tuple

import structlog

from linkflow.core.decorators import tracks_operation
from linkflow.core.exceptions import (
    BackendError,
    NoActiveUserError,
    UserNotFoundError,
    UserResolutionError,
    ValidationError,
)
from linkflow.domain.schemas import User
from linkflow.domain.state import AppStateHolder, activate_user, add_user
from linkflow.infrastructure.contracts import BackendTransport

logger = structlog.get_logger(__name__)

_NUMERIC_INPUT = re.compile(r"^[0-9]+$")


class SessionStore:
    """Resolves users against the backend and tracks the active one."""

    def __init__(self, backend: BackendTransport, state: AppStateHolder):
        self.backend = backend
        self.state = state

    @property
    def users(self) -> Tuple[User, ...]:
        return self.state.current.users

    @property
    def active_user(self) -> Optional[User]:
        return self.state.current.active_user

    def require_active_user(self) -> User:
        user = self.active_user
        if user is None:
            raise NoActiveUserError()
        return user

    @tracks_operation("resolve_user")
    async def resolve_user(self, user_input: str) -> User:
        """
        Load a user by id or create one by name, then make it active.

        Args:
            user_input: Raw text the user submitted

        Returns:
            The active user

        Raises:
            ValidationError: If the input is blank
            UserResolutionError: If lookup fails for a reason other than
                not-found, or if creating the user fails
        """
        value = (user_input or "").strip()
        if not value:
            raise ValidationError("Username is required")

        user: Optional[User] = None
        if _NUMERIC_INPUT.match(value):
            user = await self._lookup(int(value))

        if user is None:
            user = await self._create(value)

        self.state.apply(add_user, user)
        self.state.apply(activate_user, user.id)
        logger.info("user_activated", user_id=user.id, known_users=len(self.users))
        return user

    def select_user(self, user_id: int) -> User:
        """Make an already-known user active."""
        user = self.state.current.find_user(user_id)
        if user is None:
            raise UserResolutionError(
                f"Unknown user {user_id}", details={"user_id": user_id}
            )
        self.state.apply(activate_user, user_id)
        logger.info("user_selected", user_id=user_id)
        return user

    async def _lookup(self, user_id: int) -> Optional[User]:
        try:
            return await self.backend.get_user(user_id)
        except UserNotFoundError:
            logger.info("user_lookup_not_found", user_id=user_id, fallback="create_user")
            return None
        except BackendError as e:
            raise UserResolutionError(
                f"Failed to load user: {e.message}",
                details={"user_id": user_id, "cause": e.message},
            ) from e

    async def _create(self, username: str) -> User:
        try:
            user = await self.backend.create_user(username)
        except BackendError as e:
            raise UserResolutionError(
                f"Failed to create user: {e.message}",
                details={"username": username, "cause": e.message},
            ) from e
        logger.info("user_created", user_id=user.id, username=user.username)
        return user
