"""
User repository for database operations
"""

import logging
from datetime import datetime

from ..connection import DatabaseConnection
from ..models import User, UserStats

logger = logging.getLogger(__name__)

VALID_ROLES = ("admin", "user")


class UserRepository:
    """Repository for user-related database operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def create_user(
        self,
        telegram_id: int,
        first_name: str,
        username: str | None = None,
        role: str = "user",
    ) -> User | None:
        """Create a new user"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO users (telegram_id, first_name, username, role)
                    VALUES (?, ?, ?, ?)
                    """,
                    (telegram_id, first_name, username, role),
                )

                conn.commit()

                # Return the created user
                return self.get_user_by_telegram_id(telegram_id)
        except Exception as e:
            logger.error(f"Error creating user: {e}")
            return None

    def get_user_by_telegram_id(self, telegram_id: int) -> User | None:
        """Get user by Telegram ID"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT * FROM users WHERE telegram_id = ?",
                    (telegram_id,)
                )
                row = cursor.fetchone()
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Error getting user by Telegram ID: {e}")
            return None

    def update_user(
        self,
        telegram_id: int,
        first_name: str | None = None,
        username: str | None = None,
    ) -> bool:
        """Update user profile information"""
        try:
            with self.db_connection.get_connection() as conn:
                updates = []
                params = []

                if first_name is not None:
                    updates.append("first_name = ?")
                    params.append(first_name)

                if username is not None:
                    updates.append("username = ?")
                    params.append(username)

                if not updates:
                    return False

                updates.append("updated_at = ?")
                params.append(datetime.now())
                params.append(telegram_id)

                cursor = conn.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE telegram_id = ?",  # noqa: S608
                    params
                )
                conn.commit()

                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating user: {e}")
            return False

    def set_role(self, telegram_id: int, role: str) -> bool:
        """Set the role of a user"""
        if role not in VALID_ROLES:
            logger.warning(f"Refusing to set unknown role {role!r} for user {telegram_id}")
            return False
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE users SET role = ?, updated_at = ? WHERE telegram_id = ?",
                    (role, datetime.now(), telegram_id)
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error setting user role: {e}")
            return False

    def get_user_stats(self, user_id: int) -> UserStats | None:
        """Get dashboard statistics for a user"""
        try:
            with self.db_connection.get_connection() as conn:
                # Today's quiz activity
                cursor = conn.execute(
                    """
                    SELECT
                        COUNT(*) as today_count,
                        COALESCE(SUM(CASE WHEN is_correct THEN 1 ELSE 0 END), 0) as today_correct
                    FROM quiz_records
                    WHERE user_id = ? AND date(created_at) = date('now')
                    """,
                    (user_id,)
                )

                row = cursor.fetchone()
                stats = dict(row)
                stats["today_accuracy"] = (
                    round(stats["today_correct"] * 100 / stats["today_count"])
                    if stats["today_count"]
                    else 0
                )

                # Open wrong-word ledger entries
                cursor = conn.execute(
                    """
                    SELECT
                        COUNT(*) as total_wrong,
                        COALESCE(SUM(CASE WHEN importance >= 2 THEN 1 ELSE 0 END), 0) as important_wrong
                    FROM wrong_words
                    WHERE user_id = ? AND mastered = 0
                    """,
                    (user_id,)
                )

                wrong_row = cursor.fetchone()
                stats["total_wrong"] = wrong_row["total_wrong"]
                stats["important_wrong"] = wrong_row["important_wrong"]

                return stats

        except Exception as e:
            logger.error(f"Error getting user stats: {e}")
            return None
