"""
Message handlers for the Vocabulary Book Bot
"""

import logging

from telegram import Update
from telegram.ext import ContextTypes

from ...utils import parse_inline_keyboard_data
from ..session.session_manager import QUIZ_ACTIONS, SessionManager
from ..state.user_state_manager import UserStateManager
from .admin_handlers import ACTION_IMPORT_CANCEL, ACTION_IMPORT_CONFIRM, AdminHandlers
from .command_handlers import (
    ACTION_START_QUIZ,
    ACTION_WRONG_DELETE,
    ACTION_WRONG_TAB,
    CommandHandlers,
)

logger = logging.getLogger(__name__)


class MessageHandlers:
    """Handles text messages, photos and callback queries"""

    def __init__(
        self,
        safe_reply_callback,
        command_handlers: CommandHandlers,
        admin_handlers: AdminHandlers,
        state_manager: UserStateManager,
        session_manager: SessionManager,
    ):
        self._safe_reply = safe_reply_callback
        self.command_handlers = command_handlers
        self.admin_handlers = admin_handlers
        self.state_manager = state_manager
        self.session_manager = session_manager

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle text messages: pending admin input first, then quiz answers"""
        if not update.message or not update.effective_user:
            return

        text = update.message.text or ""
        telegram_id = update.effective_user.id

        if self.state_manager.is_waiting_for_words(telegram_id):
            unit_id = self.state_manager.get_state_data(telegram_id).get("unit_id")
            self.state_manager.clear_state(telegram_id)
            await self.admin_handlers.add_word_lines(update, unit_id, text)
            return

        if self.state_manager.is_confirming_import(telegram_id):
            await self.admin_handlers.replace_import_preview(update, text)
            return

        if await self.session_manager.handle_answer(update, text):
            return

        await self._safe_reply(
            update,
            "📝 没有进行中的测验。\n\n"
            "/grades - 浏览年级\n"
            "/review - 复习错题\n"
            "/help - 查看帮助",
        )

    async def handle_photo(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle photos sent for an OCR import"""
        if not update.message or not update.effective_user:
            return

        if not self.state_manager.is_waiting_for_image(update.effective_user.id):
            await self._safe_reply(update, "📷 如需识别单词表，请先使用 /import <单元ID>")
            return

        await self.admin_handlers.process_import_photo(update)

    async def handle_callback_query(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle callback queries from inline keyboards"""
        if not update.callback_query or not update.effective_user:
            return

        query = update.callback_query
        await query.answer()

        if not query.data or not query.data.startswith("{"):
            logger.warning(f"Unhandled callback query: {query.data}")
            return

        data = parse_inline_keyboard_data(query.data)
        action = data.get("action")

        if action in QUIZ_ACTIONS:
            await self.session_manager.handle_quiz_callback(query)
        elif action == ACTION_START_QUIZ:
            await self.command_handlers.start_quiz_callback(update, data)
        elif action in (ACTION_WRONG_DELETE, ACTION_WRONG_TAB):
            await self.command_handlers.wrong_book_callback(update, data)
        elif action in (ACTION_IMPORT_CONFIRM, ACTION_IMPORT_CANCEL):
            if not self.command_handlers.is_admin(update.effective_user.id):
                logger.warning(f"Non-admin {update.effective_user.id} pressed an import button")
                return
            await self.admin_handlers.handle_import_callback(update, data)
        else:
            logger.warning(f"Unhandled callback action: {action}")
