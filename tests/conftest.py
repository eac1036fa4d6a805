"""
Shared fixtures: isolated settings and a temporary SQLite database
"""

import os
import tempfile

import pytest

import src.core.database.database_manager as database_manager_module
import src.dictionary as dictionary_module
import src.ocr as ocr_module
import src.text_parser as text_parser_module
import src.word_processor as word_processor_module
from src.config import get_settings
from src.database import DatabaseManager


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Settings from a controlled environment and fresh global singletons"""
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "test_token")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'global.db'}")
    for name in (
        "OPENAI_API_KEY",
        "ALLOWED_USERS",
        "ADMIN_USERS",
        "ALIBABA_CLOUD_ACCESS_KEY_ID",
        "ALIBABA_CLOUD_ACCESS_KEY_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)  # keeps a developer's .env out of the tests

    get_settings.cache_clear()
    monkeypatch.setattr(database_manager_module, "_db_manager", None)
    monkeypatch.setattr(dictionary_module, "_dictionary_client", None)
    monkeypatch.setattr(ocr_module, "_ocr_client", None)
    monkeypatch.setattr(text_parser_module, "_parser", None)
    monkeypatch.setattr(word_processor_module, "_word_processor", None)

    yield get_settings()

    get_settings.cache_clear()


@pytest.fixture
def temp_db():
    """Create temporary database for testing"""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    temp_file.close()

    db_manager = DatabaseManager(temp_file.name)
    db_manager.init_database()

    yield db_manager

    # Cleanup, including WAL side files
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(temp_file.name + suffix):
            os.unlink(temp_file.name + suffix)


@pytest.fixture
def sample_unit(temp_db):
    """A grade with one unit holding apple, banana and cat"""
    grade = temp_db.create_grade("Grade 3", 1)
    unit = temp_db.create_unit(grade["id"], "Unit 1", 1)
    temp_db.add_words_to_unit(
        unit["id"],
        [
            {"word": "apple", "definition": "n. 苹果", "phonetic": "/ˈæpl/"},
            {"word": "banana", "definition": "n. 香蕉", "phonetic": "/bəˈnɑːnə/"},
            {"word": "cat", "definition": "n. 猫", "phonetic": "/kæt/"},
        ],
    )
    return unit
