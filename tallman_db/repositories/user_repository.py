"""
Approved user repository.

Holds the allow-list consulted after identity checks. One username, the
bootstrap admin, is seeded by the schema and can never be deleted.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .models import User, UserRole
from ..db.collection import CollectionStore
from ..errors import ProtectedResourceError, UniqueKeyViolation

logger = logging.getLogger(__name__)

APPROVED_USERS = "approvedUsers"


class ApprovedUserRepository:
    """
    Parameters
    ----------
    store:
        CollectionStore bound to the approvedUsers collection.
    bootstrap_admin:
        Username that must always exist and may never be deleted.
    """

    def __init__(self, store: CollectionStore[User], bootstrap_admin: str):
        self.store = store
        self.bootstrap_admin = bootstrap_admin

    def is_protected(self, username: str) -> bool:
        return username == self.bootstrap_admin

    # ------------------------------------------------------------------
    # Creation / mutation
    # ------------------------------------------------------------------

    def upsert(self, user: User) -> None:
        """Create or replace a user. The bootstrap admin's role may change."""
        self.store.put(user)

    def request_access(self, username: str) -> User:
        """
        Register a newly signed-up user as on hold.

        Raises UniqueKeyViolation if the user is already known.
        """
        user = User(username=username, role=UserRole.HOLD)
        self.store.add(user)
        return user

    def ensure_bootstrap(self) -> bool:
        """
        Re-create the bootstrap admin if it is missing.

        Returns True when a record had to be written.
        """
        try:
            self.store.add(User(username=self.bootstrap_admin, role=UserRole.ADMIN))
        except UniqueKeyViolation:
            return False
        logger.info("Created bootstrap admin %r", self.bootstrap_admin)
        return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, username: str) -> Optional[User]:
        return self.store.get(username)

    def list_all(self) -> List[User]:
        return sorted(self.store.get_all(), key=lambda u: u.username)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def delete(self, username: str) -> None:
        if self.is_protected(username):
            raise ProtectedResourceError(APPROVED_USERS, username)
        self.store.delete(username)
