"""
Unified database manager that coordinates all repositories
"""

import logging
from typing import Any

from .connection import DatabaseConnection
from .models import Grade, Unit, User, UserStats, Word, WrongWordEntry
from .repositories.catalog_repository import CatalogRepository
from .repositories.quiz_record_repository import QuizRecordRepository
from .repositories.user_repository import UserRepository
from .repositories.word_repository import WordRepository
from .repositories.wrong_word_repository import WrongWordRepository

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Unified database manager that coordinates all repositories"""

    def __init__(self, db_path: str | None = None):
        self.db_connection = DatabaseConnection(db_path)
        self.user_repo = UserRepository(self.db_connection)
        self.catalog_repo = CatalogRepository(self.db_connection)
        self.word_repo = WordRepository(self.db_connection)
        self.quiz_record_repo = QuizRecordRepository(self.db_connection)
        self.wrong_word_repo = WrongWordRepository(self.db_connection)

    def init_database(self) -> None:
        """Initialize database tables and indexes"""
        self.db_connection.init_database()

    # User methods
    def create_user(
        self,
        telegram_id: int,
        first_name: str,
        username: str | None = None,
        role: str = "user",
    ) -> User | None:
        """Create a new user"""
        return self.user_repo.create_user(telegram_id, first_name, username, role)

    def get_user_by_telegram_id(self, telegram_id: int) -> User | None:
        """Get user by Telegram ID"""
        return self.user_repo.get_user_by_telegram_id(telegram_id)

    def update_user(
        self,
        telegram_id: int,
        first_name: str | None = None,
        username: str | None = None,
    ) -> bool:
        """Update user profile information"""
        return self.user_repo.update_user(telegram_id, first_name, username)

    def set_user_role(self, telegram_id: int, role: str) -> bool:
        """Set the role of a user"""
        return self.user_repo.set_role(telegram_id, role)

    def get_user_stats(self, user_id: int) -> UserStats | None:
        """Get dashboard statistics for a user"""
        return self.user_repo.get_user_stats(user_id)

    # Catalog methods
    def create_grade(self, name: str, sort_order: int = 0) -> Grade | None:
        """Create a new grade"""
        return self.catalog_repo.create_grade(name, sort_order)

    def get_grade(self, grade_id: int) -> Grade | None:
        """Get grade by ID"""
        return self.catalog_repo.get_grade(grade_id)

    def get_grades(self) -> list[Grade]:
        """Get all grades in display order"""
        return self.catalog_repo.get_grades()

    def rename_grade(self, grade_id: int, name: str) -> bool:
        """Rename a grade"""
        return self.catalog_repo.update_grade(grade_id, name=name)

    def delete_grade(self, grade_id: int) -> bool:
        """Delete a grade with its units and words"""
        return self.catalog_repo.delete_grade(grade_id)

    def create_unit(self, grade_id: int, name: str, sort_order: int = 0) -> Unit | None:
        """Create a new unit"""
        return self.catalog_repo.create_unit(grade_id, name, sort_order)

    def get_unit(self, unit_id: int) -> Unit | None:
        """Get unit by ID"""
        return self.catalog_repo.get_unit(unit_id)

    def get_units_by_grade(self, grade_id: int) -> list[dict[str, Any]]:
        """Get units of a grade with word counts"""
        return self.catalog_repo.get_units_by_grade(grade_id)

    def rename_unit(self, unit_id: int, name: str) -> bool:
        """Rename a unit"""
        return self.catalog_repo.update_unit(unit_id, name=name)

    def delete_unit(self, unit_id: int) -> bool:
        """Delete a unit with its words"""
        return self.catalog_repo.delete_unit(unit_id)

    # Word methods
    def create_word(
        self,
        unit_id: int,
        word: str,
        definition: str,
        phonetic: str | None = None,
    ) -> Word | None:
        """Create a single word"""
        return self.word_repo.create_word(unit_id, word, definition, phonetic)

    def add_words_to_unit(self, unit_id: int, words_data: list[dict[str, Any]]) -> int:
        """Add multiple words to a unit and return how many were new"""
        return self.word_repo.create_words_batch(unit_id, words_data)

    def get_word_by_id(self, word_id: int) -> Word | None:
        """Get word by ID"""
        return self.word_repo.get_word_by_id(word_id)

    def update_word(
        self,
        word_id: int,
        word: str | None = None,
        definition: str | None = None,
        phonetic: str | None = None,
    ) -> bool:
        """Update a word"""
        return self.word_repo.update_word(word_id, word, definition, phonetic)

    def delete_word(self, word_id: int) -> bool:
        """Delete a word"""
        return self.word_repo.delete_word(word_id)

    def get_words_by_unit(self, unit_id: int) -> list[Word]:
        """Get all words of a unit"""
        return self.word_repo.get_words_by_unit(unit_id)

    def search_words(self, query: str, limit: int = 20) -> list[Word]:
        """Find words by spelling prefix"""
        return self.word_repo.search_words(query, limit)

    # Quiz record methods
    def add_quiz_records(
        self, user_id: int, quiz_type: str, results: list[tuple[int, bool]]
    ) -> int:
        """Append quiz records in one batch"""
        return self.quiz_record_repo.add_records(user_id, quiz_type, results)

    def get_quiz_history(self, user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        """Get the latest quiz records of a user"""
        return self.quiz_record_repo.get_history(user_id, limit)

    # Wrong word methods
    def record_miss(self, user_id: int, word_id: int) -> None:
        """Count a miss in the wrong-word ledger"""
        self.wrong_word_repo.record_miss(user_id, word_id)

    def record_hit(self, user_id: int, word_id: int) -> bool:
        """Count a hit on an existing wrong-word entry"""
        return self.wrong_word_repo.record_hit(user_id, word_id)

    def get_wrong_word_entry(self, user_id: int, word_id: int) -> WrongWordEntry | None:
        """Get a single wrong-word entry"""
        return self.wrong_word_repo.get_entry(user_id, word_id)

    def get_wrong_words(
        self, user_id: int, importance: int | None = None
    ) -> list[dict[str, Any]]:
        """Get the wrong-word book of a user"""
        return self.wrong_word_repo.get_wrong_words(user_id, importance)

    def count_wrong_words_by_importance(self, user_id: int) -> dict[int, int]:
        """Count open wrong words per importance tier"""
        return self.wrong_word_repo.count_by_importance(user_id)

    def get_wrong_word_pool(
        self, user_id: int, min_importance: int | None = None
    ) -> list[Word]:
        """Get words for a wrong-word review quiz"""
        return self.wrong_word_repo.get_pool_words(user_id, min_importance)

    def set_wrong_word_importance(self, user_id: int, word_id: int, importance: int) -> bool:
        """Set the importance tier of a wrong word"""
        return self.wrong_word_repo.set_importance(user_id, word_id, importance)

    def set_wrong_word_mastered(
        self, user_id: int, word_id: int, mastered: bool = True
    ) -> bool:
        """Mark a wrong word as mastered"""
        return self.wrong_word_repo.set_mastered(user_id, word_id, mastered)

    def delete_wrong_word(self, user_id: int, word_id: int) -> bool:
        """Remove a word from the wrong-word book"""
        return self.wrong_word_repo.delete_entry(user_id, word_id)

    def get_connection(self):
        """Get database connection for direct SQL access in tests"""
        return self.db_connection.get_connection()


# Global instance
_db_manager = None


def get_db_manager(db_path: str | None = None) -> DatabaseManager:
    """Get global database manager instance"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager(db_path)
    return _db_manager
