"""
Quiz session state machine
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..database.models import Word
from ..exceptions import InvalidTransitionError
from .quiz_modes import QuizItem, QuizMode, Speaker, get_quiz_mode

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle of a quiz session"""

    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class QuizOutcome:
    """Result of answering one item"""

    word_id: int
    word: str
    definition: str
    is_correct: bool
    user_answer: str | None = None


@dataclass
class QuizResult:
    """Finished session handed to result presentation"""

    mode: str
    total: int
    outcomes: list[QuizOutcome] = field(default_factory=list)

    @property
    def correct_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_correct)

    @property
    def accuracy(self) -> int:
        """Rounded percentage of correct outcomes, 0 for an empty result"""
        if not self.outcomes:
            return 0
        return round(self.correct_count * 100 / len(self.outcomes))

    @property
    def wrong_outcomes(self) -> list[QuizOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.is_correct]


class QuizSession:
    """Drives one learner through a pool of words, one item at a time

    Transitions run synchronously. Typed modes require submit_answer followed
    by advance; flashcards are marked known or unknown, which advances at once.
    An empty pool starts the session already finished.
    """

    def __init__(
        self,
        mode: QuizMode | str,
        words: list[Word],
        speaker: Speaker | None = None,
    ):
        self.mode = get_quiz_mode(mode) if isinstance(mode, str) else mode
        self.items = [QuizItem(word=word) for word in words]
        self.speaker = speaker
        self.index = 0
        self.outcomes: list[QuizOutcome] = []
        self.state = SessionState.FINISHED if not self.items else SessionState.IN_PROGRESS
        self.created_at = datetime.now()

        if self.state is SessionState.IN_PROGRESS:
            self.mode.present(self.current_item, self.speaker)

    @property
    def is_finished(self) -> bool:
        return self.state is SessionState.FINISHED

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def current_item(self) -> QuizItem | None:
        if self.is_finished:
            return None
        return self.items[self.index]

    def submit_answer(self, text: str) -> QuizOutcome:
        """Grade a typed answer for the current item"""
        item = self._require_current()
        if not self.mode.accepts_text:
            raise InvalidTransitionError(f"Mode {self.mode.tag} does not take typed answers")
        if item.answered:
            raise InvalidTransitionError("Current item is already answered")

        answer = text.strip()
        is_correct = self.mode.grade(item, answer)
        outcome = self._record(item, is_correct, answer)

        if not is_correct:
            self._speak(item)
        return outcome

    def advance(self) -> None:
        """Move past an answered item, finishing after the last one"""
        item = self._require_current()
        if not item.answered:
            raise InvalidTransitionError("Current item has not been answered")

        if self.index + 1 < len(self.items):
            self.index += 1
            self.mode.present(self.current_item, self.speaker)
        else:
            self.state = SessionState.FINISHED
            logger.debug(
                f"Quiz finished: {self.result.correct_count}/{self.total} ({self.mode.tag})"
            )

    def mark_flashcard(self, known: bool) -> QuizOutcome:
        """Self-report a flashcard and move on"""
        item = self._require_current()
        if self.mode.accepts_text:
            raise InvalidTransitionError(f"Mode {self.mode.tag} is not a flashcard mode")
        if item.answered:
            raise InvalidTransitionError("Current card is already marked")

        outcome = self._record(item, bool(known), None)
        self.advance()
        return outcome

    def flip(self) -> None:
        """Reveal the definition of the current card"""
        self.mode.flip(self._require_current())

    def replay(self) -> None:
        """Pronounce the current word again"""
        self._speak(self._require_current())

    @property
    def result(self) -> QuizResult:
        if not self.is_finished:
            raise InvalidTransitionError("Quiz session is still in progress")
        return QuizResult(mode=self.mode.tag, total=self.total, outcomes=list(self.outcomes))

    def _require_current(self) -> QuizItem:
        item = self.current_item
        if item is None:
            raise InvalidTransitionError("Quiz session is finished")
        return item

    def _record(self, item: QuizItem, is_correct: bool, answer: str | None) -> QuizOutcome:
        item.answer = answer
        item.answered = True
        outcome = QuizOutcome(
            word_id=item.word["id"],
            word=item.word["word"],
            definition=item.word["definition"],
            is_correct=is_correct,
            user_answer=answer,
        )
        self.outcomes.append(outcome)
        return outcome

    def _speak(self, item: QuizItem) -> None:
        if self.speaker is not None:
            self.speaker.speak(item.word["word"])
