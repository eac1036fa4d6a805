"""Per-user lock that keeps an admin from running two OCR imports at once"""

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """What a user is busy with and since when"""

    locked_at: datetime
    operation: str


class UserLockManager:
    """One long-running operation per user

    A lock left behind by a handler that never finished expires after the
    timeout and is dropped the next time it is looked at.
    """

    def __init__(self, lock_timeout_minutes: int = 5):
        self._locks: dict[int, LockInfo] = {}
        self._lock_timeout = timedelta(minutes=lock_timeout_minutes)

    def get_lock_info(self, user_id: int) -> LockInfo | None:
        """The user's live lock, if any"""
        lock_info = self._locks.get(user_id)
        if lock_info and datetime.now() - lock_info.locked_at > self._lock_timeout:
            logger.warning(f"Dropped expired {lock_info.operation} lock of user {user_id}")
            del self._locks[user_id]
            return None
        return lock_info

    def is_locked(self, user_id: int) -> bool:
        return self.get_lock_info(user_id) is not None

    @contextlib.contextmanager
    def hold(self, user_id: int, operation: str) -> Iterator[bool]:
        """Hold the user's lock for the duration of a block

        Yields False without locking when another operation holds it.
        """
        busy = self.get_lock_info(user_id)
        if busy:
            logger.warning(f"User {user_id} is still busy with {busy.operation}")
            yield False
            return

        lock_info = LockInfo(locked_at=datetime.now(), operation=operation)
        self._locks[user_id] = lock_info
        logger.info(f"Locked user {user_id} for {operation}")
        try:
            yield True
        finally:
            # an expired lock may already have been replaced by a newer one
            if self._locks.get(user_id) is lock_info:
                del self._locks[user_id]
            logger.info(f"Released {operation} lock of user {user_id}")
