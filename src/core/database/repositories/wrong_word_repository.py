"""
Wrong word repository: the per-user ledger of missed words
"""

import logging
import sqlite3

from ...exceptions import StoreError
from ..connection import DatabaseConnection
from ..models import Word, WrongWordEntry

logger = logging.getLogger(__name__)

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 3


class WrongWordRepository:
    """Repository for wrong-word ledger operations

    Miss and hit updates are single statements so concurrent sessions of one
    learner cannot lose increments.
    """

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def record_miss(self, user_id: int, word_id: int) -> None:
        """Insert a ledger entry or count another miss on it"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO wrong_words (
                        user_id, word_id, wrong_count, correct_streak,
                        mastered, last_wrong_at
                    )
                    VALUES (?, ?, 1, 0, 0, CURRENT_TIMESTAMP)
                    ON CONFLICT(user_id, word_id) DO UPDATE SET
                        wrong_count = wrong_count + 1,
                        correct_streak = 0,
                        mastered = 0,
                        last_wrong_at = CURRENT_TIMESTAMP
                    """,
                    (user_id, word_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error recording miss for user {user_id}, word {word_id}: {e}")
            raise StoreError(f"Could not record miss for word {word_id}") from e

    def record_hit(self, user_id: int, word_id: int) -> bool:
        """Extend the correct streak of an existing entry; returns False if none exists"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE wrong_words
                    SET correct_streak = correct_streak + 1
                    WHERE user_id = ? AND word_id = ?
                    """,
                    (user_id, word_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error recording hit for user {user_id}, word {word_id}: {e}")
            raise StoreError(f"Could not record hit for word {word_id}") from e

    def get_entry(self, user_id: int, word_id: int) -> WrongWordEntry | None:
        """Get the ledger entry for a (user, word) pair"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT * FROM wrong_words WHERE user_id = ? AND word_id = ?",
                    (user_id, word_id),
                )
                row = cursor.fetchone()
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Error getting wrong word entry: {e}")
            return None

    def get_wrong_words(self, user_id: int, importance: int | None = None) -> list[dict]:
        """Get un-mastered entries with word details, most important first"""
        try:
            with self.db_connection.get_connection() as conn:
                query = """
                    SELECT ww.*, w.word, w.phonetic, w.definition, w.unit_id
                    FROM wrong_words ww
                    JOIN words w ON ww.word_id = w.id
                    WHERE ww.user_id = ? AND ww.mastered = 0
                """
                params: list = [user_id]
                if importance is not None:
                    query += " AND ww.importance = ?"
                    params.append(importance)
                query += " ORDER BY ww.importance DESC, ww.last_wrong_at DESC, ww.id DESC"

                cursor = conn.execute(query, params)
                return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error getting wrong words: {e}")
            return []

    def count_by_importance(self, user_id: int) -> dict[int, int]:
        """Count un-mastered entries per importance tier"""
        counts = dict.fromkeys(range(MIN_IMPORTANCE, MAX_IMPORTANCE + 1), 0)
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT importance, COUNT(*) as total
                    FROM wrong_words
                    WHERE user_id = ? AND mastered = 0
                    GROUP BY importance
                    """,
                    (user_id,),
                )
                for row in cursor.fetchall():
                    counts[row["importance"]] = row["total"]
                return counts
        except Exception as e:
            logger.error(f"Error counting wrong words: {e}")
            return counts

    def get_pool_words(self, user_id: int, min_importance: int | None = None) -> list[Word]:
        """Resolve un-mastered entries to their words for a review quiz

        Raises StoreError when the store cannot be read.
        """
        try:
            with self.db_connection.get_connection() as conn:
                query = """
                    SELECT w.*
                    FROM wrong_words ww
                    JOIN words w ON ww.word_id = w.id
                    WHERE ww.user_id = ? AND ww.mastered = 0
                """
                params: list = [user_id]
                if min_importance is not None:
                    query += " AND ww.importance >= ?"
                    params.append(min_importance)
                query += " ORDER BY w.id"

                cursor = conn.execute(query, params)
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Error loading wrong word pool for user {user_id}: {e}")
            raise StoreError("Could not load wrong words") from e

    def set_importance(self, user_id: int, word_id: int, importance: int) -> bool:
        """Set the importance tier of an entry"""
        if not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
            logger.warning(f"Importance {importance} out of range for word {word_id}")
            return False
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE wrong_words SET importance = ? WHERE user_id = ? AND word_id = ?",
                    (importance, user_id, word_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error setting importance: {e}")
            return False

    def set_mastered(self, user_id: int, word_id: int, mastered: bool = True) -> bool:
        """Mark an entry as mastered, which removes it from review pools"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE wrong_words SET mastered = ? WHERE user_id = ? AND word_id = ?",
                    (1 if mastered else 0, user_id, word_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error setting mastered flag: {e}")
            return False

    def delete_entry(self, user_id: int, word_id: int) -> bool:
        """Remove an entry from the wrong-word book"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM wrong_words WHERE user_id = ? AND word_id = ?",
                    (user_id, word_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting wrong word entry: {e}")
            return False
