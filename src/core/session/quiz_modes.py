"""
Quiz modes: how an item is presented, answered and graded
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol

from ..database.models import Word
from ..exceptions import InvalidTransitionError


class Speaker(Protocol):
    """Fire-and-forget pronunciation of an English word"""

    def speak(self, word: str) -> None: ...


@dataclass
class QuizItem:
    """One word in a running session plus its transient answer state"""

    word: Word
    answer: str | None = None
    flipped: bool = False
    answered: bool = False


class QuizMode(ABC):
    """Shared contract of all quiz modes"""

    tag: str = ""
    label: str = ""
    accepts_text: bool = True
    offers_replay: bool = True

    @abstractmethod
    def prompt(self, item: QuizItem) -> str:
        """Plain text shown to the learner for the item"""

    def present(self, item: QuizItem, speaker: Speaker | None) -> None:
        """Called whenever an item becomes current"""

    def grade(self, item: QuizItem, answer: str) -> bool:
        """Case-insensitive comparison of the trimmed answer with the word"""
        return answer.strip().lower() == item.word["word"].strip().lower()

    def flip(self, item: QuizItem) -> None:
        raise InvalidTransitionError(f"Mode {self.tag} has no card to flip")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.tag}>"


class ChineseToEnglishMode(QuizMode):
    """Show the Chinese definition, type the English word"""

    tag = "cn_to_en"
    label = "看中文写英文"
    offers_replay = False

    def prompt(self, item: QuizItem) -> str:
        return item.word["definition"]


class ListenWriteMode(QuizMode):
    """Hear the word, type its spelling"""

    tag = "listen_write"
    label = "听写"

    def prompt(self, item: QuizItem) -> str:
        return "🔊 听发音，写出单词"

    def present(self, item: QuizItem, speaker: Speaker | None) -> None:
        if speaker is not None:
            speaker.speak(item.word["word"])


class FlashcardMode(QuizMode):
    """Show the word, flip for the definition, self-report known or not"""

    tag = "flashcard"
    label = "闪卡"
    accepts_text = False

    def prompt(self, item: QuizItem) -> str:
        text = item.word["word"]
        if item.word.get("phonetic"):
            text += f"  {item.word['phonetic']}"
        if item.flipped:
            text += f"\n{item.word['definition']}"
        return text

    def grade(self, item: QuizItem, answer: str) -> bool:
        raise InvalidTransitionError("Flashcards are graded by self-report")

    def flip(self, item: QuizItem) -> None:
        item.flipped = True


QUIZ_MODES: dict[str, QuizMode] = {
    mode.tag: mode
    for mode in (ChineseToEnglishMode(), ListenWriteMode(), FlashcardMode())
}

DEFAULT_MODE = ChineseToEnglishMode.tag


def get_quiz_mode(tag: str) -> QuizMode:
    """Look up a quiz mode by its tag"""
    try:
        return QUIZ_MODES[tag]
    except KeyError:
        raise ValueError(f"Unknown quiz mode: {tag}") from None
