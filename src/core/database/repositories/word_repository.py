"""
Word repository for database operations
"""

import logging
import sqlite3
from typing import Any

from ...exceptions import StoreError
from ..connection import DatabaseConnection
from ..models import Word

logger = logging.getLogger(__name__)


def normalize_word(word: str) -> str:
    """Canonical spelling stored for a word"""
    return word.strip().lower()


class WordRepository:
    """Repository for word-related database operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def create_word(
        self,
        unit_id: int,
        word: str,
        definition: str,
        phonetic: str | None = None,
    ) -> Word | None:
        """Create a new word in a unit"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO words (unit_id, word, phonetic, definition)
                    VALUES (?, ?, ?, ?)
                    """,
                    (unit_id, normalize_word(word), phonetic or None, definition.strip()),
                )

                word_id = cursor.lastrowid
                conn.commit()

                # Return the created word
                return self.get_word_by_id(word_id)
        except Exception as e:
            logger.error(f"Error creating word: {e}")
            return None

    def create_words_batch(self, unit_id: int, words_data: list[dict[str, Any]]) -> int:
        """Add multiple words to a unit, skipping spellings the unit already has"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT word FROM words WHERE unit_id = ?", (unit_id,)
                )
                existing = {row["word"] for row in cursor.fetchall()}

                added_count = 0
                for word_data in words_data:
                    word = normalize_word(word_data.get("word", ""))
                    definition = (word_data.get("definition") or "").strip()
                    if not word or word in existing:
                        continue

                    conn.execute(
                        """
                        INSERT INTO words (unit_id, word, phonetic, definition)
                        VALUES (?, ?, ?, ?)
                        """,
                        (unit_id, word, word_data.get("phonetic") or None, definition),
                    )
                    existing.add(word)
                    added_count += 1

                conn.commit()
                logger.info(f"Added {added_count} of {len(words_data)} words to unit {unit_id}")
                return added_count
        except Exception as e:
            logger.error(f"Error adding words to unit {unit_id}: {e}")
            return 0

    def get_word_by_id(self, word_id: int) -> Word | None:
        """Get word by ID"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,))
                row = cursor.fetchone()
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Error getting word by ID: {e}")
            return None

    def update_word(
        self,
        word_id: int,
        word: str | None = None,
        definition: str | None = None,
        phonetic: str | None = None,
    ) -> bool:
        """Update spelling, definition or phonetic of a word"""
        try:
            with self.db_connection.get_connection() as conn:
                updates = []
                params: list = []

                if word is not None:
                    updates.append("word = ?")
                    params.append(normalize_word(word))

                if definition is not None:
                    updates.append("definition = ?")
                    params.append(definition.strip())

                if phonetic is not None:
                    updates.append("phonetic = ?")
                    params.append(phonetic or None)

                if not updates:
                    return False

                params.append(word_id)
                cursor = conn.execute(
                    f"UPDATE words SET {', '.join(updates)} WHERE id = ?",  # noqa: S608
                    params,
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating word {word_id}: {e}")
            return False

    def delete_word(self, word_id: int) -> bool:
        """Delete a word"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting word {word_id}: {e}")
            return False

    def get_words_by_unit(self, unit_id: int) -> list[Word]:
        """Get all words of a unit ordered by ID

        Raises StoreError when the store cannot be read, since quiz pools are
        built from this query.
        """
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT * FROM words WHERE unit_id = ? ORDER BY id",
                    (unit_id,),
                )
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Error getting words by unit {unit_id}: {e}")
            raise StoreError(f"Could not load words of unit {unit_id}") from e

    def search_words(self, query: str, limit: int = 20) -> list[Word]:
        """Find words whose spelling starts with the query"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT * FROM words
                    WHERE word LIKE ?
                    ORDER BY word, id
                    LIMIT ?
                    """,
                    (f"{normalize_word(query)}%", limit),
                )
                return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error searching words: {e}")
            return []
