"""
Database models for the Vocabulary Book Bot
"""

from datetime import datetime
from typing import TypedDict


class User(TypedDict):
    """User model"""
    telegram_id: int
    first_name: str
    username: str | None
    role: str
    created_at: datetime
    updated_at: datetime
    is_active: bool


class Grade(TypedDict):
    """Grade model"""
    id: int
    name: str
    sort_order: int
    created_at: datetime


class Unit(TypedDict):
    """Unit model"""
    id: int
    grade_id: int
    name: str
    sort_order: int
    created_at: datetime


class Word(TypedDict):
    """Word model"""
    id: int
    unit_id: int
    word: str
    phonetic: str | None
    definition: str
    created_at: datetime


class QuizRecord(TypedDict):
    """Quiz record model"""
    id: int
    user_id: int
    word_id: int
    quiz_type: str
    is_correct: bool
    created_at: datetime


class WrongWordEntry(TypedDict):
    """Wrong word ledger entry"""
    id: int
    user_id: int
    word_id: int
    wrong_count: int
    correct_streak: int
    importance: int
    mastered: bool
    last_wrong_at: datetime
    created_at: datetime


class UserStats(TypedDict):
    """User dashboard statistics model"""
    today_count: int
    today_correct: int
    today_accuracy: int
    total_wrong: int
    important_wrong: int
