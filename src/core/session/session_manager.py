"""
Quiz session management for the Vocabulary Book Bot
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update

from ...database import DatabaseManager
from ...utils import (
    Timer,
    create_inline_keyboard_data,
    escape_html,
    format_quiz_result,
    parse_inline_keyboard_data,
)
from ..exceptions import InvalidTransitionError, StoreError
from .learner_context import LearnerContext
from .outcome_persister import OutcomePersister
from .quiz_modes import Speaker, get_quiz_mode
from .quiz_session import QuizSession
from .word_pool import PoolCriteria, WordPoolLoader

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "❌ 操作失败，请稍后重试"
SESSION_EXPIRED_MESSAGE = "⌛ 测验已结束或已过期，请重新开始。"
UNSAVED_RESULT_MESSAGE = "💾 测验结果尚未保存，请点击“重新保存”。"

ACTION_NEXT = "qn"
ACTION_FLIP = "qf"
ACTION_MARK = "qm"
ACTION_REPLAY = "qr"
ACTION_RETRY_SAVE = "qp"
QUIZ_ACTIONS = {ACTION_NEXT, ACTION_FLIP, ACTION_MARK, ACTION_REPLAY, ACTION_RETRY_SAVE}


@dataclass
class ActiveQuiz:
    """A running quiz together with who is taking it"""

    session: QuizSession
    context: LearnerContext
    timer: Timer = field(default_factory=Timer)
    created_at: datetime = field(default_factory=datetime.now)


class SessionManager:
    """Runs quiz sessions over Telegram messages and inline buttons

    Holds at most one quiz per user. Results are persisted only when a quiz
    finishes; cancelling or replacing a quiz discards it.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        safe_reply_callback,
        safe_edit_callback,
        speaker_factory: Callable[[int], Speaker] | None = None,
        pool_loader: WordPoolLoader | None = None,
        persister: OutcomePersister | None = None,
        max_age_hours: int = 24,
    ):
        self.db_manager = db_manager
        self._safe_reply = safe_reply_callback
        self._safe_edit = safe_edit_callback
        self.speaker_factory = speaker_factory
        self.pool_loader = pool_loader or WordPoolLoader(db_manager)
        self.persister = persister or OutcomePersister(db_manager)
        self.user_sessions: dict[int, ActiveQuiz] = {}
        self.max_age_hours = max_age_hours
        self._cleanup_task: asyncio.Task | None = None

    async def start(self):
        """Start the periodic cleanup of abandoned quizzes"""
        logger.info("Starting SessionManager")
        self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def stop(self):
        """Stop the cleanup task"""
        logger.info("Stopping SessionManager")
        if self._cleanup_task:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task

    async def start_quiz(
        self,
        update: Update,
        context: LearnerContext,
        criteria: PoolCriteria,
        mode_tag: str,
    ) -> bool:
        """Load a pool and show the first item; False when nothing was started"""
        mode = get_quiz_mode(mode_tag)
        self.cancel_session(context.user_id)

        try:
            words = self.pool_loader.load_pool(context, criteria)
        except StoreError as e:
            logger.error(f"Could not load quiz pool for user {context.user_id}: {e}")
            await self._safe_reply(update, GENERIC_ERROR_MESSAGE)
            return False

        if not words:
            await self._safe_reply(update, "📭 没有可以测验的单词。")
            return False

        speaker = None
        if self.speaker_factory and update.effective_chat:
            speaker = self.speaker_factory(update.effective_chat.id)

        session = QuizSession(mode, words, speaker=speaker)
        quiz = ActiveQuiz(session=session, context=context)
        quiz.timer.start()
        self.user_sessions[context.user_id] = quiz
        logger.info(
            f"Started {mode.tag} quiz for user {context.user_id} with {len(words)} words"
        )

        text, reply_markup = self._render_current_item(session)
        await self._safe_reply(update, text, reply_markup=reply_markup, parse_mode="HTML")
        return True

    async def handle_answer(self, update: Update, text: str) -> bool:
        """Grade a typed answer; False when the user has no quiz waiting for text"""
        quiz = self.user_sessions.get(update.effective_user.id)
        if not quiz:
            return False

        session = quiz.session
        if session.is_finished:
            await self._safe_reply(update, UNSAVED_RESULT_MESSAGE)
            return True

        if not session.mode.accepts_text:
            await self._safe_reply(update, "👆 闪卡模式请使用下方按钮作答。")
            return True

        if session.current_item.answered:
            await self._safe_reply(update, "👉 请点击“下一题”继续。")
            return True

        outcome = session.submit_answer(text)
        if outcome.is_correct:
            feedback = f"✅ 正确！<b>{escape_html(outcome.word)}</b>"
        else:
            feedback = (
                f"❌ 错误。正确答案：<b>{escape_html(outcome.word)}</b>\n"
                f"{escape_html(outcome.definition)}"
            )

        word_id = outcome.word_id
        keyboard = [
            [
                InlineKeyboardButton(
                    "➡️ 下一题",
                    callback_data=create_inline_keyboard_data(ACTION_NEXT, word_id=word_id),
                ),
                InlineKeyboardButton(
                    "🔊 发音",
                    callback_data=create_inline_keyboard_data(ACTION_REPLAY, word_id=word_id),
                ),
            ]
        ]
        await self._safe_reply(
            update, feedback, reply_markup=InlineKeyboardMarkup(keyboard), parse_mode="HTML"
        )
        return True

    async def handle_quiz_callback(self, query):
        """Handle quiz-related callback queries"""
        data = parse_inline_keyboard_data(query.data)
        action = data.get("action")
        quiz = self.user_sessions.get(query.from_user.id)

        if not quiz:
            await self._safe_edit(query, SESSION_EXPIRED_MESSAGE)
            return

        session = quiz.session
        if action == ACTION_RETRY_SAVE:
            if session.is_finished:
                await self._finish_quiz(query, quiz)
            return

        current = session.current_item
        if current is None or data.get("word_id") != current.word["id"]:
            logger.debug(f"Ignoring stale quiz button {data} from user {query.from_user.id}")
            return

        try:
            if action == ACTION_NEXT:
                session.advance()
            elif action == ACTION_FLIP:
                session.flip()
            elif action == ACTION_MARK:
                session.mark_flashcard(bool(data.get("known")))
            elif action == ACTION_REPLAY:
                session.replay()
                return
            else:
                logger.warning(f"Unknown quiz callback action: {action}")
                return
        except InvalidTransitionError as e:
            logger.debug(f"Rejected quiz action {action} for user {query.from_user.id}: {e}")
            return

        if session.is_finished:
            await self._finish_quiz(query, quiz)
        else:
            text, reply_markup = self._render_current_item(session)
            await self._safe_edit(query, text, reply_markup=reply_markup, parse_mode="HTML")

    def replay(self, user_id: int) -> bool:
        """Pronounce the current word of the user's quiz again"""
        quiz = self.user_sessions.get(user_id)
        if not quiz or quiz.session.is_finished:
            return False
        quiz.session.replay()
        return True

    def cancel_session(self, user_id: int) -> ActiveQuiz | None:
        """Discard the user's quiz without saving anything"""
        quiz = self.user_sessions.pop(user_id, None)
        if quiz:
            quiz.timer.stop()
            logger.info(
                f"Discarded {quiz.session.mode.tag} quiz for user {user_id} "
                f"after {len(quiz.session.outcomes)}/{quiz.session.total} answers"
            )
        return quiz

    def get_session(self, user_id: int) -> ActiveQuiz | None:
        """Get active quiz for user"""
        return self.user_sessions.get(user_id)

    def cleanup_expired_sessions(self, max_age_hours: int | None = None) -> int:
        """Drop quizzes that were abandoned"""
        if max_age_hours is None:
            max_age_hours = self.max_age_hours
        current_time = datetime.now()
        expired_users = [
            user_id
            for user_id, quiz in self.user_sessions.items()
            if (current_time - quiz.created_at).total_seconds() / 3600 > max_age_hours
        ]

        for user_id in expired_users:
            del self.user_sessions[user_id]
            logger.info(f"Cleaned up expired quiz for user {user_id}")
        return len(expired_users)

    async def _periodic_cleanup(self):
        """Periodically drop abandoned quizzes"""
        while True:
            try:
                await asyncio.sleep(600)
                self.cleanup_expired_sessions()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in quiz cleanup: {e}")

    async def _finish_quiz(self, query, quiz: ActiveQuiz):
        """Persist the finished quiz and show the result

        When saving fails the quiz is kept so the learner can retry from the
        result screen.
        """
        if quiz.timer.end_time is None:
            quiz.timer.stop()
        result = quiz.session.result
        text = format_quiz_result(result, quiz.session.mode.label)
        text += f"\n\n⏱️ 用时：{quiz.timer.elapsed() or 0:.0f} 秒"

        try:
            self.persister.persist_result(quiz.context, result)
        except StoreError as e:
            logger.error(f"Could not save quiz result for user {quiz.context.user_id}: {e}")
            keyboard = [
                [
                    InlineKeyboardButton(
                        "💾 重新保存",
                        callback_data=create_inline_keyboard_data(ACTION_RETRY_SAVE),
                    )
                ]
            ]
            await self._safe_edit(
                query,
                f"{text}\n\n{GENERIC_ERROR_MESSAGE}",
                parse_mode="HTML",
                reply_markup=InlineKeyboardMarkup(keyboard),
            )
            return

        self.user_sessions.pop(quiz.context.user_id, None)
        await self._safe_edit(query, text, parse_mode="HTML")

    def _render_current_item(self, session: QuizSession):
        """Text and keyboard for the item the learner has to answer now"""
        item = session.current_item
        mode = session.mode
        word_id = item.word["id"]

        text = (
            f"📝 {escape_html(mode.label)} · 第 <b>{session.index + 1}/{session.total}</b> 题\n\n"
            f"<b>{escape_html(mode.prompt(item))}</b>"
        )

        replay_button = InlineKeyboardButton(
            "🔊 发音",
            callback_data=create_inline_keyboard_data(ACTION_REPLAY, word_id=word_id),
        )

        if mode.accepts_text:
            text += "\n\n✍️ 请直接发送英文单词"
            keyboard = [[replay_button]] if mode.offers_replay else []
        else:
            keyboard = []
            if not item.flipped:
                keyboard.append(
                    [
                        InlineKeyboardButton(
                            "🔄 翻面",
                            callback_data=create_inline_keyboard_data(ACTION_FLIP, word_id=word_id),
                        )
                    ]
                )
            keyboard.append(
                [
                    InlineKeyboardButton(
                        "✅ 认识",
                        callback_data=create_inline_keyboard_data(
                            ACTION_MARK, word_id=word_id, known=True
                        ),
                    ),
                    InlineKeyboardButton(
                        "❌ 不认识",
                        callback_data=create_inline_keyboard_data(
                            ACTION_MARK, word_id=word_id, known=False
                        ),
                    ),
                ]
            )
            keyboard.append([replay_button])

        reply_markup = InlineKeyboardMarkup(keyboard) if keyboard else None
        return text, reply_markup
