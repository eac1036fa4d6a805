"""
Database connection manager for the Vocabulary Book Bot
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from ...config import get_database_path

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Manages SQLite database connections and settings"""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or get_database_path()
        self._ensure_database_directory()
        self._init_connection_settings()

    def _ensure_database_directory(self) -> None:
        """Ensure the database directory exists"""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    def _init_connection_settings(self) -> None:
        """Initialize database connection settings"""
        with self.get_connection() as conn:
            # WAL lets readers proceed while a quiz result is being written
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout=30000")

    @contextmanager
    def get_connection(self):
        """Get database connection with proper cleanup"""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, detect_types=sqlite3.PARSE_DECLTYPES)
            conn.row_factory = sqlite3.Row  # Enable dict-like access
            # Cascades on grade/unit deletion rely on this per connection
            conn.execute("PRAGMA foreign_keys=ON")

            def adapt_date(val):
                return val.isoformat()

            def adapt_datetime(val):
                return val.isoformat()

            def convert_date(val):
                try:
                    return date.fromisoformat(val.decode())
                except ValueError:
                    date_str = val.decode()
                    for fmt in ["%Y-%m-%d", "%Y-%m-%d %H:%M:%S"]:
                        try:
                            return datetime.strptime(date_str, fmt).date()
                        except ValueError:
                            continue
                    raise ValueError(f"Invalid date format: {date_str}") from None

            def convert_datetime(val):
                try:
                    return datetime.fromisoformat(val.decode())
                except ValueError:
                    datetime_str = val.decode()
                    for fmt in [
                        "%Y-%m-%d %H:%M:%S",
                        "%Y-%m-%d %H:%M:%S.%f",
                        "%Y-%m-%d",
                    ]:
                        try:
                            return datetime.strptime(datetime_str, fmt)
                        except ValueError:
                            continue
                    raise ValueError(
                        f"Invalid datetime format: {datetime_str}"
                    ) from None

            sqlite3.register_adapter(date, adapt_date)
            sqlite3.register_adapter(datetime, adapt_datetime)
            sqlite3.register_converter("date", convert_date)
            sqlite3.register_converter("datetime", convert_datetime)
            sqlite3.register_converter("timestamp", convert_datetime)

            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def init_database(self) -> None:
        """Initialize database tables"""
        with self.get_connection() as conn:
            self._create_tables(conn)
            self._run_migrations(conn)
            self._create_indexes(conn)
            conn.commit()

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        """Create database tables"""
        tables = [
            """
            CREATE TABLE IF NOT EXISTS users (
                telegram_id INTEGER PRIMARY KEY,
                first_name TEXT NOT NULL,
                username TEXT,
                role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user')),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                is_active BOOLEAN DEFAULT 1
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS grades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS units (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                grade_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (grade_id) REFERENCES grades(id) ON DELETE CASCADE
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS words (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                unit_id INTEGER NOT NULL,
                word TEXT NOT NULL,
                phonetic TEXT,
                definition TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (unit_id) REFERENCES units(id) ON DELETE CASCADE
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS quiz_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                word_id INTEGER NOT NULL,
                quiz_type TEXT NOT NULL,
                is_correct BOOLEAN NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (word_id) REFERENCES words(id) ON DELETE CASCADE
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS wrong_words (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                word_id INTEGER NOT NULL,
                wrong_count INTEGER NOT NULL DEFAULT 1,
                correct_streak INTEGER NOT NULL DEFAULT 0,
                importance INTEGER NOT NULL DEFAULT 1,
                mastered BOOLEAN NOT NULL DEFAULT 0,
                last_wrong_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (word_id) REFERENCES words(id) ON DELETE CASCADE,
                UNIQUE(user_id, word_id)
            )
            """,
        ]

        for table_sql in tables:
            conn.execute(table_sql)

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for performance"""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_units_grade_id ON units(grade_id)",
            "CREATE INDEX IF NOT EXISTS idx_words_unit_id ON words(unit_id)",
            "CREATE INDEX IF NOT EXISTS idx_words_word ON words(word)",
            (
                "CREATE INDEX IF NOT EXISTS idx_quiz_records_user_created "
                "ON quiz_records(user_id, created_at)"
            ),
            (
                "CREATE INDEX IF NOT EXISTS idx_wrong_words_user_importance "
                "ON wrong_words(user_id, mastered, importance)"
            ),
        ]

        for index_sql in indexes:
            try:
                conn.execute(index_sql)
            except sqlite3.OperationalError as e:
                logger.warning(f"Failed to create index: {index_sql}, error: {e}")

    def _run_migrations(self, conn: sqlite3.Connection) -> None:
        """Run database migrations for schema updates"""
        try:
            cursor = conn.execute("PRAGMA table_info(users)")
            user_columns = {row[1] for row in cursor.fetchall()}

            if "role" not in user_columns:
                logger.info("Adding missing role column to users table")
                conn.execute(
                    "ALTER TABLE users ADD COLUMN role TEXT NOT NULL DEFAULT 'user'"
                )
                conn.commit()

            cursor = conn.execute("PRAGMA table_info(wrong_words)")
            wrong_columns = {row[1] for row in cursor.fetchall()}

            if "importance" not in wrong_columns:
                logger.info("Adding missing importance column to wrong_words table")
                conn.execute(
                    "ALTER TABLE wrong_words ADD COLUMN importance INTEGER NOT NULL DEFAULT 1"
                )
                conn.commit()

        except sqlite3.Error as e:
            logger.error(f"Error running database migrations: {e}")
