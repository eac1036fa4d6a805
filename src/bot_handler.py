"""
Telegram bot handler wiring the vocabulary book components together
"""

import logging
import re
from functools import wraps

from telegram import BotCommand, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .config import get_settings
from .core.database.database_manager import get_db_manager
from .core.handlers.admin_handlers import AdminHandlers
from .core.handlers.command_handlers import CommandHandlers
from .core.handlers.message_handlers import MessageHandlers
from .core.locks.user_lock_manager import UserLockManager
from .core.session.session_manager import SessionManager
from .core.state.user_state_manager import UserStateManager
from .dictionary import get_dictionary_client
from .ocr import get_ocr_client
from .speech import TelegramSpeaker
from .text_parser import get_text_parser
from .word_processor import get_word_processor

logger = logging.getLogger(__name__)

QUIZ_INTERRUPTED_MESSAGE = "⚠️ 测验已中断，本次结果未保存"


class BotHandler:
    """Main Telegram bot handler using modular architecture"""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self.db_manager = get_db_manager()
        self.dictionary_client = get_dictionary_client()
        self.ocr_client = get_ocr_client()
        self.word_processor = get_word_processor()
        self.text_parser = get_text_parser()
        self.lock_manager = UserLockManager(
            lock_timeout_minutes=self.settings.lock_timeout_minutes
        )
        self.state_manager = UserStateManager(
            state_timeout_minutes=self.settings.state_timeout_minutes
        )

        self.application = None

        # Initialize modular components
        self.session_manager = SessionManager(
            db_manager=self.db_manager,
            safe_reply_callback=self._safe_reply,
            safe_edit_callback=self._safe_edit,
            speaker_factory=self._create_speaker,
            max_age_hours=self.settings.session_max_age_hours,
        )

        self.command_handlers = CommandHandlers(
            db_manager=self.db_manager,
            dictionary_client=self.dictionary_client,
            safe_reply_callback=self._safe_reply,
            safe_edit_callback=self._safe_edit,
            session_manager=self.session_manager,
            state_manager=self.state_manager,
            settings=self.settings,
        )

        self.admin_handlers = AdminHandlers(
            db_manager=self.db_manager,
            word_processor=self.word_processor,
            ocr_client=self.ocr_client,
            text_parser=self.text_parser,
            safe_reply_callback=self._safe_reply,
            safe_edit_callback=self._safe_edit,
            safe_edit_message_callback=self._safe_edit_message,
            state_manager=self.state_manager,
            lock_manager=self.lock_manager,
            settings=self.settings,
        )

        self.message_handlers = MessageHandlers(
            safe_reply_callback=self._safe_reply,
            command_handlers=self.command_handlers,
            admin_handlers=self.admin_handlers,
            state_manager=self.state_manager,
            session_manager=self.session_manager,
        )

    def _create_speaker(self, chat_id: int) -> TelegramSpeaker:
        return TelegramSpeaker(self.application.bot, chat_id)

    def _is_user_authorized(self, user_id: int) -> bool:
        """Check if user is authorized to use the bot"""
        if not self.settings.allowed_users_list:
            return False
        return user_id in self.settings.allowed_users_list

    async def _check_authorization(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> bool:
        """Check if user is authorized and send unauthorized message if not"""
        user_id = update.effective_user.id

        if not self._is_user_authorized(user_id):
            await self._safe_reply(update, "❌ 你没有使用权限，请联系管理员。")
            logger.warning(f"Unauthorized access attempt from user {user_id}")
            return False

        return True

    def require_authorization(self, func):
        """Decorator to require authorization for handler functions"""

        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            if not await self._check_authorization(update, context):
                return
            return await func(update, context)

        return wrapper

    def require_admin(self, func):
        """Decorator to restrict a handler to administrators"""

        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            user_id = update.effective_user.id
            if not self.command_handlers.is_admin(user_id):
                await self._safe_reply(update, "❌ 该命令仅限管理员使用。")
                logger.warning(f"Non-admin user {user_id} tried an admin command")
                return
            return await func(update, context)

        return wrapper

    def interrupt_quiz(self, func):
        """Decorator that abandons a running quiz before another command runs"""

        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            if self.session_manager.cancel_session(update.effective_user.id):
                await self._safe_reply(update, QUIZ_INTERRUPTED_MESSAGE)
            return await func(update, context)

        return wrapper

    def run(self):
        """Run the bot (synchronous entry point)"""
        logger.info("Starting Vocabulary Book Bot...")

        # Initialize database
        self.db_manager.init_database()

        # Create application
        self.application = (
            Application.builder()
            .token(self.settings.telegram_bot_token)
            .read_timeout(30)
            .write_timeout(30)
            .connect_timeout(30)
            .pool_timeout(30)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .build()
        )

        # Add handlers
        self._add_handlers()

        # Start polling
        logger.info("Bot started successfully!")
        self.application.run_polling(
            poll_interval=self.settings.polling_interval,
            timeout=10,
            bootstrap_retries=3,
        )

    async def _post_init(self, application):
        """Start background managers once the event loop is running"""
        await self.state_manager.start()
        await self.session_manager.start()
        await self.setup_bot_menu(application)

    async def _post_shutdown(self, application):
        """Stop background managers and close HTTP clients"""
        await self.state_manager.stop()
        await self.session_manager.stop()
        await self.dictionary_client.aclose()
        await self.ocr_client.aclose()

    def _add_handlers(self):
        """Add command and message handlers"""
        app = self.application
        learner = self.command_handlers
        admin = self.admin_handlers

        # Commands that leave a running quiz alone
        for command, callback in (
            ("replay", learner.replay_command),
            ("cancel", learner.cancel_command),
        ):
            app.add_handler(CommandHandler(command, self.require_authorization(callback)))

        learner_commands = {
            "start": learner.start_command,
            "help": learner.help_command,
            "grades": learner.grades_command,
            "units": learner.units_command,
            "words": learner.words_command,
            "quiz": learner.quiz_command,
            "review": learner.review_command,
            "wrong": learner.wrong_command,
            "importance": learner.importance_command,
            "mastered": learner.mastered_command,
            "stats": learner.stats_command,
            "lookup": learner.lookup_command,
        }
        for command, callback in learner_commands.items():
            app.add_handler(
                CommandHandler(
                    command, self.require_authorization(self.interrupt_quiz(callback))
                )
            )

        admin_commands = {
            "add_grade": admin.add_grade_command,
            "add_unit": admin.add_unit_command,
            "rename_grade": admin.rename_grade_command,
            "rename_unit": admin.rename_unit_command,
            "del_grade": admin.delete_grade_command,
            "del_unit": admin.delete_unit_command,
            "add_words": admin.add_words_command,
            "edit_word": admin.edit_word_command,
            "del_word": admin.delete_word_command,
            "import": admin.import_command,
        }
        for command, callback in admin_commands.items():
            app.add_handler(
                CommandHandler(
                    command,
                    self.require_authorization(
                        self.require_admin(self.interrupt_quiz(callback))
                    ),
                )
            )

        # Message handlers with authorization
        app.add_handler(
            MessageHandler(
                filters.PHOTO,
                self.require_authorization(self.message_handlers.handle_photo),
            )
        )
        app.add_handler(
            MessageHandler(
                filters.TEXT & ~filters.COMMAND,
                self.require_authorization(self.message_handlers.handle_message),
            )
        )

        # Callback query handler with authorization
        app.add_handler(
            CallbackQueryHandler(
                self.require_authorization(self.message_handlers.handle_callback_query)
            )
        )

        # Error handler
        app.add_error_handler(self.error_handler)

    async def setup_bot_menu(self, application):
        """Setup bot menu with commands for better UX"""
        commands = [
            BotCommand("grades", "📚 浏览年级"),
            BotCommand("quiz", "🎯 单元测验"),
            BotCommand("review", "🔁 复习错题"),
            BotCommand("wrong", "📕 错题本"),
            BotCommand("stats", "📊 学习统计"),
            BotCommand("lookup", "🔎 查词"),
            BotCommand("replay", "🔊 再听一遍"),
            BotCommand("cancel", "🛑 取消当前操作"),
            BotCommand("help", "❓ 帮助"),
        ]

        try:
            await application.bot.set_my_commands(commands)
            logger.info("Bot menu commands set successfully")
        except TelegramError as e:
            logger.error(f"Failed to set bot menu commands: {e}")

    async def _safe_reply(self, update_or_query, text: str, **kwargs):
        """Safely send a reply message to an Update or a Message"""
        if isinstance(update_or_query, Update):
            # Button presses carry the bot's message, not a user message
            message = update_or_query.effective_message
        else:
            message = update_or_query

        if message is None:
            logger.warning(f"No message to reply to, dropped text: {text[:100]}")
            return None

        try:
            return await message.reply_text(text, **kwargs)
        except TelegramError as e:
            logger.error(f"Error sending reply: {e}")
            logger.error(f"Failed text: {text[:100]}...")
            return None

    async def _safe_edit(self, query, text: str, **kwargs):
        """Safely edit a message"""
        try:
            return await query.edit_message_text(text, **kwargs)
        except TelegramError as e:
            logger.error(f"Error editing message: {e}")
            return None

    async def _safe_edit_message(self, message, text: str, **kwargs):
        """Safely edit a message, falling back to plain text and then a new message"""
        if message is None:
            logger.debug("Cannot edit message: message is None")
            return None

        if getattr(message, "text", None) == text:
            logger.debug("Message content is identical, skipping edit")
            return message

        try:
            return await message.edit_text(text, **kwargs)
        except TelegramError as e:
            logger.error(f"Message edit failed for {getattr(message, 'message_id', None)}: {e}")

        if kwargs.get("parse_mode") == "HTML":
            plain_text = re.sub(r"<[^>]+>", "", text)
            kwargs_no_html = {k: v for k, v in kwargs.items() if k != "parse_mode"}
            try:
                return await message.edit_text(plain_text, **kwargs_no_html)
            except TelegramError as e:
                logger.error(f"Edit without HTML also failed: {e}")

        try:
            logger.info("Falling back to sending new message")
            return await message.reply_text(text, **kwargs)
        except TelegramError as e:
            logger.error(f"Fallback message also failed: {e}")
            return None

    async def error_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle errors"""
        logger.error(f"Update {update} caused error {context.error}")


def get_bot_handler(settings=None) -> BotHandler:
    """Get bot handler instance"""
    return BotHandler(settings)
