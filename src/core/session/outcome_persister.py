"""
Persistence of finished quiz sessions and wrong-word scoring
"""

import logging
from collections.abc import Sequence

from ..database.database_manager import DatabaseManager
from .learner_context import LearnerContext
from .quiz_session import QuizOutcome, QuizResult

logger = logging.getLogger(__name__)


class OutcomePersister:
    """Writes quiz records and folds outcomes into the wrong-word ledger

    Each ledger write commits on its own; a StoreError midway leaves the
    earlier writes in place.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def persist(
        self, context: LearnerContext, mode: str, outcomes: Sequence[QuizOutcome]
    ) -> None:
        """Record outcomes of one session in answer order"""
        if not outcomes:
            return

        self.db_manager.add_quiz_records(
            context.user_id,
            mode,
            [(outcome.word_id, outcome.is_correct) for outcome in outcomes],
        )

        for outcome in outcomes:
            if outcome.is_correct:
                self.db_manager.record_hit(context.user_id, outcome.word_id)
            else:
                self.db_manager.record_miss(context.user_id, outcome.word_id)

        misses = sum(1 for outcome in outcomes if not outcome.is_correct)
        logger.info(
            f"Saved {len(outcomes)} {mode} outcomes for user {context.user_id} "
            f"({misses} wrong)"
        )

    def persist_result(self, context: LearnerContext, result: QuizResult) -> None:
        """Persist a finished session result"""
        self.persist(context, result.mode, result.outcomes)
