from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from helpdesk.core.cache import RedisCache, user_cache_key
from helpdesk.core.exceptions import NotFoundError
from helpdesk.models import User
from helpdesk.schemas.user import UserIdentity

logger = logging.getLogger(__name__)


class UserDirectory:
    """Resolves user ids to identities.

    ``resolve`` always reads the users table, so role changes and
    deactivations take effect on the next lifecycle operation. The cache only
    backs ``authenticate``, which establishes who is calling; it is refreshed
    or evicted every time ``resolve`` reads the row.
    """

    def __init__(self, session: Session, cache: Optional[RedisCache] = None):
        self.session = session
        self.cache = cache

    def resolve(self, user_id: UUID) -> UserIdentity:
        """Return id and role of an active user.

        Raises NotFoundError for unknown, inactive or soft-deleted users.
        """
        # populate_existing picks up writes committed by other sessions
        user = self.session.get(User, user_id, populate_existing=True)
        if not user or not user.is_active or user.deleted_at is not None:
            if self.cache is not None:
                self.cache.delete(user_cache_key(user_id))
            logger.warning(f"User {user_id} does not resolve")
            raise NotFoundError("User not found")

        identity = UserIdentity.model_validate(user)
        if self.cache is not None:
            self.cache.set(
                user_cache_key(user_id),
                {"id": str(identity.id), "role": identity.role.value},
            )
        return identity

    def authenticate(self, user_id: UUID) -> UserIdentity:
        """Identity for a verified bearer token, served from cache when warm."""
        if self.cache is not None:
            cached = self.cache.get(user_cache_key(user_id))
            if cached:
                return UserIdentity(**cached)
        return self.resolve(user_id)
