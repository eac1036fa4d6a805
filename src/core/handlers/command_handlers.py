"""
Learner command handlers for the Vocabulary Book Bot
"""

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import ContextTypes

from ...config import Settings, get_settings
from ...database import DatabaseManager
from ...dictionary import DictionaryClient
from ...speech import pronunciation_url
from ...utils import (
    IMPORTANCE_STARS,
    create_inline_keyboard_data,
    escape_html,
    format_user_stats,
    format_word_line,
    format_wrong_word,
    safe_int,
)
from ..database.repositories.wrong_word_repository import MAX_IMPORTANCE, MIN_IMPORTANCE
from ..exceptions import DictionaryError, StoreError, WordNotFoundError
from ..session.learner_context import LearnerContext
from ..session.quiz_modes import DEFAULT_MODE, QUIZ_MODES
from ..session.session_manager import GENERIC_ERROR_MESSAGE, SessionManager
from ..session.word_pool import UnitPool, WrongWordPool

logger = logging.getLogger(__name__)

ACTION_START_QUIZ = "qs"
ACTION_WRONG_DELETE = "wd"
ACTION_WRONG_TAB = "wt"
WRONG_BOOK_PAGE_SIZE = 20

NOT_REGISTERED_MESSAGE = "❌ 用户未注册，请先使用 /start"


class CommandHandlers:
    """Handles learner commands"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        dictionary_client: DictionaryClient,
        safe_reply_callback,
        safe_edit_callback,
        session_manager: SessionManager,
        state_manager=None,
        settings: Settings | None = None,
    ):
        self.db_manager = db_manager
        self.dictionary_client = dictionary_client
        self._safe_reply = safe_reply_callback
        self._safe_edit = safe_edit_callback
        self.session_manager = session_manager
        self.state_manager = state_manager
        self.settings = settings or get_settings()

    def is_admin(self, telegram_id: int) -> bool:
        """Admins come from configuration or from the user's stored role"""
        if telegram_id in self.settings.admin_users_list:
            return True
        db_user = self.db_manager.get_user_by_telegram_id(telegram_id)
        return bool(db_user and db_user["role"] == "admin")

    async def _get_learner_context(self, update: Update) -> LearnerContext | None:
        """Context of a registered learner; replies and returns None otherwise"""
        user = update.effective_user
        db_user = self.db_manager.get_user_by_telegram_id(user.id)
        if not db_user:
            await self._safe_reply(update, NOT_REGISTERED_MESSAGE)
            return None
        return LearnerContext(
            user_id=user.id,
            display_name=db_user["first_name"],
            is_admin=self.is_admin(user.id),
        )

    async def start_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /start command"""
        if not update.effective_user:
            return

        user = update.effective_user
        role = "admin" if user.id in self.settings.admin_users_list else "user"

        db_user = self.db_manager.get_user_by_telegram_id(user.id)
        if not db_user:
            db_user = self.db_manager.create_user(
                telegram_id=user.id,
                first_name=user.first_name,
                username=user.username,
                role=role,
            )
        else:
            self.db_manager.update_user(user.id, user.first_name, user.username)
            if role == "admin" and db_user["role"] != "admin":
                self.db_manager.set_user_role(user.id, "admin")

        welcome_message = f"""🎉 你好，{escape_html(user.first_name)}！

欢迎使用单词本 📚

🔤 <b>怎么开始：</b>
1. /grades 查看年级，/units 查看单元
2. /words 浏览单元单词
3. /quiz 开始测验，答错的单词会进入错词本
4. /review 复习错词本

❓ 完整命令请看 /help"""

        await self._safe_reply(
            update,
            welcome_message,
            parse_mode="HTML",
            reply_markup=ReplyKeyboardRemove(),
        )

    async def help_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /help command"""
        if not update.effective_user:
            return

        help_message = """📖 <b>命令说明</b>

📚 <b>浏览：</b>
/grades - 年级列表
/units &lt;年级ID&gt; - 单元列表
/words &lt;单元ID&gt; - 单元单词
/lookup &lt;单词&gt; - 查词典

📝 <b>测验：</b>
/quiz &lt;单元ID&gt; [模式] - 单元测验
/review [最低重要度] [模式] - 错词复习
模式：cn_to_en（看中文写英文）、listen_write（听写）、flashcard（闪卡）
/replay - 重新播放发音
/cancel - 放弃当前测验（不保存）

📕 <b>错词本：</b>
/wrong [重要度] - 查看错词本
/importance &lt;单词ID&gt; &lt;1-3&gt; - 设置重要度
/mastered &lt;单词ID&gt; - 标记为已掌握

📊 /stats - 今日统计"""

        if self.is_admin(update.effective_user.id):
            help_message += """

🛠️ <b>管理：</b>
/add_grade &lt;名称&gt; [排序]
/add_unit &lt;年级ID&gt; &lt;名称&gt; [排序]
/rename_grade &lt;年级ID&gt; &lt;名称&gt;
/rename_unit &lt;单元ID&gt; &lt;名称&gt;
/del_grade &lt;年级ID&gt;
/del_unit &lt;单元ID&gt;
/add_words &lt;单元ID&gt; 然后发送「单词 | 释义 | 音标」
/edit_word &lt;单词ID&gt; 单词 | 释义 [| 音标]
/del_word &lt;单词ID&gt;
/import &lt;单元ID&gt; 然后发送单词表照片"""

        await self._safe_reply(
            update, help_message, parse_mode="HTML", reply_markup=ReplyKeyboardRemove()
        )

    async def grades_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /grades command"""
        grades = self.db_manager.get_grades()
        if not grades:
            await self._safe_reply(update, "📭 还没有年级。")
            return

        lines = ["📚 <b>年级列表</b>\n"]
        for grade in grades:
            lines.append(f"<code>{grade['id']}</code> {escape_html(grade['name'])}")
        lines.append("\n查看单元：/units &lt;年级ID&gt;")
        await self._safe_reply(update, "\n".join(lines), parse_mode="HTML")

    async def units_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /units command"""
        grade_id = safe_int(context.args[0]) if context.args else None
        if grade_id is None:
            await self._safe_reply(update, "用法：/units <年级ID>")
            return

        grade = self.db_manager.get_grade(grade_id)
        if not grade:
            await self._safe_reply(update, "❌ 年级不存在")
            return

        units = self.db_manager.get_units_by_grade(grade_id)
        if not units:
            await self._safe_reply(update, f"📭 {grade['name']} 还没有单元。")
            return

        lines = [f"📖 <b>{escape_html(grade['name'])}</b>\n"]
        for unit in units:
            lines.append(
                f"<code>{unit['id']}</code> {escape_html(unit['name'])}（{unit['word_count']} 词）"
            )
        lines.append("\n查看单词：/words &lt;单元ID&gt;")
        await self._safe_reply(update, "\n".join(lines), parse_mode="HTML")

    async def words_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /words command"""
        unit_id = safe_int(context.args[0]) if context.args else None
        if unit_id is None:
            await self._safe_reply(update, "用法：/words <单元ID>")
            return

        unit = self.db_manager.get_unit(unit_id)
        if not unit:
            await self._safe_reply(update, "❌ 单元不存在")
            return

        try:
            words = self.db_manager.get_words_by_unit(unit_id)
        except StoreError as e:
            logger.error(f"Could not list words of unit {unit_id}: {e}")
            await self._safe_reply(update, GENERIC_ERROR_MESSAGE)
            return

        if not words:
            await self._safe_reply(update, f"📭 {unit['name']} 还没有单词。")
            return

        lines = [f"📖 <b>{escape_html(unit['name'])}</b>（{len(words)} 词）\n"]
        lines.extend(format_word_line(word, show_id=True) for word in words)

        keyboard = [
            [
                InlineKeyboardButton(
                    mode.label,
                    callback_data=create_inline_keyboard_data(
                        ACTION_START_QUIZ, unit_id=unit_id, mode=mode.tag
                    ),
                )
                for mode in QUIZ_MODES.values()
            ]
        ]
        await self._safe_reply(
            update,
            "\n".join(lines),
            parse_mode="HTML",
            reply_markup=InlineKeyboardMarkup(keyboard),
        )

    async def quiz_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /quiz command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        unit_id = safe_int(context.args[0]) if context.args else None
        if unit_id is None:
            await self._safe_reply(update, "用法：/quiz <单元ID> [cn_to_en|listen_write|flashcard]")
            return

        mode_tag = context.args[1] if len(context.args) > 1 else DEFAULT_MODE
        if mode_tag not in QUIZ_MODES:
            await self._safe_reply(update, f"❌ 未知模式：{mode_tag}\n可选：{', '.join(QUIZ_MODES)}")
            return

        if not self.db_manager.get_unit(unit_id):
            await self._safe_reply(update, "❌ 单元不存在")
            return

        await self.session_manager.start_quiz(update, learner, UnitPool(unit_id), mode_tag)

    async def review_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /review command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        min_importance = None
        mode_tag = DEFAULT_MODE
        for arg in context.args or []:
            if arg in QUIZ_MODES:
                mode_tag = arg
                continue
            value = safe_int(arg)
            if value is None or not MIN_IMPORTANCE <= value <= MAX_IMPORTANCE:
                await self._safe_reply(update, "用法：/review [1-3] [cn_to_en|listen_write|flashcard]")
                return
            min_importance = value

        await self.session_manager.start_quiz(
            update, learner, WrongWordPool(min_importance), mode_tag
        )

    async def start_quiz_callback(self, update: Update, data: dict):
        """Start a unit quiz from the buttons under a word list"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        unit_id = data.get("unit_id")
        mode_tag = data.get("mode", DEFAULT_MODE)
        if unit_id is None or mode_tag not in QUIZ_MODES:
            logger.warning(f"Invalid quiz start callback data: {data}")
            return

        await self.session_manager.start_quiz(update, learner, UnitPool(unit_id), mode_tag)

    async def wrong_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /wrong command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        importance = safe_int(context.args[0]) if context.args else None
        if importance is not None and not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
            await self._safe_reply(update, "用法：/wrong [1-3]")
            return

        text, reply_markup = self._render_wrong_book(learner.user_id, importance)
        await self._safe_reply(update, text, parse_mode="HTML", reply_markup=reply_markup)

    async def wrong_book_callback(self, update: Update, data: dict):
        """Handle delete and tab buttons of the wrong-word book"""
        query = update.callback_query
        user_id = update.effective_user.id
        action = data.get("action")
        importance = data.get("importance") or None

        if action == ACTION_WRONG_DELETE:
            word_id = data.get("word_id")
            if word_id is not None and self.db_manager.delete_wrong_word(user_id, word_id):
                logger.info(f"User {user_id} removed word {word_id} from wrong-word book")

        text, reply_markup = self._render_wrong_book(user_id, importance)
        await self._safe_edit(query, text, parse_mode="HTML", reply_markup=reply_markup)

    def _render_wrong_book(self, user_id: int, importance: int | None):
        counts = self.db_manager.count_wrong_words_by_importance(user_id)
        entries = self.db_manager.get_wrong_words(user_id, importance)

        total = sum(counts.values())
        header = f"📕 <b>错词本</b>（共 {total} 个）\n"
        header += " · ".join(
            f"{IMPORTANCE_STARS[level]} {counts.get(level, 0)}"
            for level in range(MIN_IMPORTANCE, MAX_IMPORTANCE + 1)
        )

        if not entries:
            text = header + "\n\n🎉 这里没有错词。"
        else:
            shown = entries[:WRONG_BOOK_PAGE_SIZE]
            text = header + "\n\n" + "\n".join(format_wrong_word(entry) for entry in shown)
            if len(entries) > len(shown):
                text += f"\n\n…还有 {len(entries) - len(shown)} 个"
            text += "\n\n复习：/review [最低重要度]"

        tabs = []
        for level in range(0, MAX_IMPORTANCE + 1):
            label = "全部" if level == 0 else IMPORTANCE_STARS[level]
            if (importance or 0) == level:
                label = f"• {label}"
            tabs.append(
                InlineKeyboardButton(
                    label,
                    callback_data=create_inline_keyboard_data(ACTION_WRONG_TAB, importance=level),
                )
            )
        keyboard = [tabs]
        for entry in entries[:WRONG_BOOK_PAGE_SIZE]:
            keyboard.append(
                [
                    InlineKeyboardButton(
                        f"🗑 {entry['word']}",
                        callback_data=create_inline_keyboard_data(
                            ACTION_WRONG_DELETE,
                            word_id=entry["word_id"],
                            importance=importance or 0,
                        ),
                    )
                ]
            )

        return text, InlineKeyboardMarkup(keyboard)

    async def importance_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /importance command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        args = context.args or []
        word_id = safe_int(args[0]) if len(args) > 0 else None
        importance = safe_int(args[1]) if len(args) > 1 else None
        if (
            word_id is None
            or importance is None
            or not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE
        ):
            await self._safe_reply(update, "用法：/importance <单词ID> <1-3>")
            return

        if self.db_manager.set_wrong_word_importance(learner.user_id, word_id, importance):
            await self._safe_reply(update, f"✅ 重要度已设为 {IMPORTANCE_STARS[importance]}")
        else:
            await self._safe_reply(update, "❌ 错词本中没有这个单词")

    async def mastered_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /mastered command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        word_id = safe_int(context.args[0]) if context.args else None
        if word_id is None:
            await self._safe_reply(update, "用法：/mastered <单词ID>")
            return

        if self.db_manager.set_wrong_word_mastered(learner.user_id, word_id):
            await self._safe_reply(update, "🎉 已标记为掌握，不会再出现在错词复习中")
        else:
            await self._safe_reply(update, "❌ 错词本中没有这个单词")

    async def stats_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /stats command"""
        learner = await self._get_learner_context(update)
        if not learner:
            return

        stats = self.db_manager.get_user_stats(learner.user_id)
        if stats is None:
            await self._safe_reply(update, GENERIC_ERROR_MESSAGE)
            return

        await self._safe_reply(update, format_user_stats(stats), parse_mode="HTML")

    async def lookup_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /lookup command"""
        word = " ".join(context.args or []).strip()
        if not word:
            await self._safe_reply(update, "用法：/lookup <单词>")
            return

        try:
            entry = await self.dictionary_client.lookup(word)
        except WordNotFoundError:
            await self._safe_reply(update, "❌ 单词未找到")
            return
        except DictionaryError as e:
            logger.error(f"Dictionary lookup failed for '{word}': {e}")
            await self._safe_reply(update, "❌ 查询失败，请稍后重试")
            return

        lines = [f"🔤 <b>{escape_html(entry.word)}</b> {escape_html(entry.phonetic)}"]
        if entry.chinese_definition:
            lines.append(f"🇨🇳 {escape_html(entry.chinese_definition)}")
        for part_of_speech, definition in entry.meanings:
            lines.append(f"• <i>{escape_html(part_of_speech)}</i> {escape_html(definition)}")
        audio_url = entry.audio_url or pronunciation_url(entry.word)
        lines.append(f'\n🔊 <a href="{escape_html(audio_url)}">发音</a>')

        await self._safe_reply(update, "\n".join(lines), parse_mode="HTML")

    async def replay_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /replay command"""
        if not self.session_manager.replay(update.effective_user.id):
            await self._safe_reply(update, "📭 当前没有进行中的测验")

    async def cancel_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /cancel command"""
        telegram_id = update.effective_user.id
        quiz = self.session_manager.cancel_session(telegram_id)
        if self.state_manager:
            self.state_manager.clear_state(telegram_id)

        if quiz:
            await self._safe_reply(update, "🛑 测验已放弃，本次结果未保存")
        else:
            await self._safe_reply(update, "✅ 已取消")
