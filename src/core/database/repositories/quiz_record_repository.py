"""
Quiz record repository: the append-only log of graded answers
"""

import logging
import sqlite3

from ...exceptions import StoreError
from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


class QuizRecordRepository:
    """Repository for quiz record database operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def add_records(
        self, user_id: int, quiz_type: str, results: list[tuple[int, bool]]
    ) -> int:
        """Append one record per (word_id, is_correct) pair in a single batch"""
        if not results:
            return 0
        try:
            with self.db_connection.get_connection() as conn:
                conn.executemany(
                    """
                    INSERT INTO quiz_records (user_id, word_id, quiz_type, is_correct)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (user_id, word_id, quiz_type, is_correct)
                        for word_id, is_correct in results
                    ],
                )
                conn.commit()
                return len(results)
        except sqlite3.Error as e:
            logger.error(f"Error adding quiz records for user {user_id}: {e}")
            raise StoreError("Could not save quiz records") from e

    def get_history(self, user_id: int, limit: int = 50) -> list[dict]:
        """Get the latest quiz records of a user with word details"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT qr.*, w.word, w.definition
                    FROM quiz_records qr
                    JOIN words w ON qr.word_id = w.id
                    WHERE qr.user_id = ?
                    ORDER BY qr.created_at DESC, qr.id DESC
                    LIMIT ?
                    """,
                    (user_id, limit),
                )
                return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error getting quiz history: {e}")
            return []
