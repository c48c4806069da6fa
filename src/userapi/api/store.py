"""
In-memory user store.

The only mutable state shared between worker threads. One lock guards
every operation, so `append` assigns the id and inserts the record as a
single step and readers always see a consistent snapshot.
"""

import threading
import logging
from typing import Any, Iterable, List, Optional

from .models import ABSENT, User, seed_users, utcnow


logger = logging.getLogger(__name__)


class UserStore:
    """Ordered, append-only collection of users."""

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: List[User] = list(users or [])
        self._lock = threading.Lock()

    @classmethod
    def seeded(cls) -> "UserStore":
        """A store holding the two standard seed records."""
        return cls(seed_users())

    def all(self) -> List[User]:
        """Snapshot of every user in insertion order."""
        with self._lock:
            return list(self._users)

    def find(self, user_id: Optional[int]) -> Optional[User]:
        """Linear search by id. None (an unparseable id) never matches."""
        if user_id is None:
            return None
        with self._lock:
            for user in self._users:
                if user.id == user_id:
                    return user
        return None

    def append(self, name: Any = ABSENT, email: Any = ABSENT) -> User:
        """
        Create a user with id len(store) + 1 and store it.

        Returns:
            The new record.
        """
        with self._lock:
            user = User(id=len(self._users) + 1, name=name, email=email, created_at=utcnow())
            self._users.append(user)
        logger.debug(f"Created user {user.id}")
        return user

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
