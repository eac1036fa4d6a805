"""
Word pool loading for quiz sessions
"""

import logging
import random
from dataclasses import dataclass
from typing import TypeVar

from ..database.database_manager import DatabaseManager
from ..database.models import Word
from .learner_context import LearnerContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class UnitPool:
    """All words of one unit"""

    unit_id: int


@dataclass(frozen=True)
class WrongWordPool:
    """The learner's un-mastered wrong words, optionally from a minimum importance up"""

    min_importance: int | None = None


PoolCriteria = UnitPool | WrongWordPool


def fisher_yates_shuffle(items: list[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy of items"""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class WordPoolLoader:
    """Resolves quiz criteria to a shuffled list of words

    Store failures propagate as StoreError and are not retried here.
    """

    def __init__(self, db_manager: DatabaseManager, rng: random.Random | None = None):
        self.db_manager = db_manager
        self.rng = rng or random.Random()

    def load_pool(self, context: LearnerContext, criteria: PoolCriteria) -> list[Word]:
        """Load and shuffle the words matching criteria; empty when nothing matches"""
        if isinstance(criteria, UnitPool):
            words = self.db_manager.get_words_by_unit(criteria.unit_id)
        elif isinstance(criteria, WrongWordPool):
            words = self.db_manager.get_wrong_word_pool(
                context.user_id, criteria.min_importance
            )
        else:
            raise TypeError(f"Unsupported pool criteria: {criteria!r}")

        logger.debug(f"Loaded {len(words)} words for user {context.user_id} ({criteria})")
        return fisher_yates_shuffle(words, self.rng)
