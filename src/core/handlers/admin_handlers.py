"""
Admin command handlers: catalog maintenance and word imports
"""

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from ...config import Settings, get_settings
from ...database import DatabaseManager
from ...ocr import AliyunOcrClient
from ...text_parser import WordListParser
from ...utils import Timer, create_inline_keyboard_data, escape_html, safe_int
from ...word_processor import WordProcessor
from ..exceptions import OcrError, StoreError
from ..locks.user_lock_manager import UserLockManager
from ..session.session_manager import GENERIC_ERROR_MESSAGE
from ..state.user_state_manager import UserState, UserStateManager

logger = logging.getLogger(__name__)

ACTION_IMPORT_CONFIRM = "io"
ACTION_IMPORT_CANCEL = "ic"
PREVIEW_LIMIT = 60


def _split_name_and_sort(args: list[str]) -> tuple[str, int]:
    """`name words... [sort]` where a trailing integer is the sort order"""
    if len(args) > 1 and safe_int(args[-1]) is not None:
        return " ".join(args[:-1]), int(args[-1])
    return " ".join(args), 0


class AdminHandlers:
    """Handles admin-only commands"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        word_processor: WordProcessor,
        ocr_client: AliyunOcrClient,
        text_parser: WordListParser,
        safe_reply_callback,
        safe_edit_callback,
        safe_edit_message_callback,
        state_manager: UserStateManager,
        lock_manager: UserLockManager,
        settings: Settings | None = None,
    ):
        self.db_manager = db_manager
        self.word_processor = word_processor
        self.ocr_client = ocr_client
        self.text_parser = text_parser
        self._safe_reply = safe_reply_callback
        self._safe_edit = safe_edit_callback
        self._safe_edit_message = safe_edit_message_callback
        self.state_manager = state_manager
        self.lock_manager = lock_manager
        self.settings = settings or get_settings()

    # Grades and units
    async def add_grade_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /add_grade command"""
        name, sort_order = _split_name_and_sort(context.args or [])
        if not name:
            await self._safe_reply(update, "用法：/add_grade <名称> [排序]")
            return

        grade = self.db_manager.create_grade(name, sort_order)
        if grade:
            await self._safe_reply(update, f"✅ 已创建年级 {grade['name']}（ID {grade['id']}）")
        else:
            await self._safe_reply(update, GENERIC_ERROR_MESSAGE)

    async def add_unit_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /add_unit command"""
        args = context.args or []
        grade_id = safe_int(args[0]) if args else None
        name, sort_order = _split_name_and_sort(args[1:])
        if grade_id is None or not name:
            await self._safe_reply(update, "用法：/add_unit <年级ID> <名称> [排序]")
            return

        if not self.db_manager.get_grade(grade_id):
            await self._safe_reply(update, "❌ 年级不存在")
            return

        unit = self.db_manager.create_unit(grade_id, name, sort_order)
        if unit:
            await self._safe_reply(update, f"✅ 已创建单元 {unit['name']}（ID {unit['id']}）")
        else:
            await self._safe_reply(update, GENERIC_ERROR_MESSAGE)

    async def rename_grade_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /rename_grade command"""
        args = context.args or []
        grade_id = safe_int(args[0]) if args else None
        name = " ".join(args[1:])
        if grade_id is None or not name:
            await self._safe_reply(update, "用法：/rename_grade <年级ID> <名称>")
            return

        if self.db_manager.rename_grade(grade_id, name):
            await self._safe_reply(update, f"✅ 年级已重命名为 {name}")
        else:
            await self._safe_reply(update, "❌ 年级不存在")

    async def rename_unit_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /rename_unit command"""
        args = context.args or []
        unit_id = safe_int(args[0]) if args else None
        name = " ".join(args[1:])
        if unit_id is None or not name:
            await self._safe_reply(update, "用法：/rename_unit <单元ID> <名称>")
            return

        if self.db_manager.rename_unit(unit_id, name):
            await self._safe_reply(update, f"✅ 单元已重命名为 {name}")
        else:
            await self._safe_reply(update, "❌ 单元不存在")

    async def delete_grade_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /del_grade command"""
        grade_id = safe_int(context.args[0]) if context.args else None
        if grade_id is None:
            await self._safe_reply(update, "用法：/del_grade <年级ID>")
            return

        if self.db_manager.delete_grade(grade_id):
            logger.info(f"Admin {update.effective_user.id} deleted grade {grade_id}")
            await self._safe_reply(update, "🗑 年级及其单元、单词已删除")
        else:
            await self._safe_reply(update, "❌ 年级不存在")

    async def delete_unit_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /del_unit command"""
        unit_id = safe_int(context.args[0]) if context.args else None
        if unit_id is None:
            await self._safe_reply(update, "用法：/del_unit <单元ID>")
            return

        if self.db_manager.delete_unit(unit_id):
            logger.info(f"Admin {update.effective_user.id} deleted unit {unit_id}")
            await self._safe_reply(update, "🗑 单元及其单词已删除")
        else:
            await self._safe_reply(update, "❌ 单元不存在")

    # Words
    async def add_words_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /add_words command"""
        unit_id = safe_int(context.args[0]) if context.args else None
        if unit_id is None:
            await self._safe_reply(update, "用法：/add_words <单元ID>，然后发送「单词 | 释义 | 音标」")
            return

        if not self.db_manager.get_unit(unit_id):
            await self._safe_reply(update, "❌ 单元不存在")
            return

        # Lines after the command in the same message are added right away
        text = update.message.text or ""
        if "\n" in text:
            await self.add_word_lines(update, unit_id, text.split("\n", 1)[1])
            return

        self.state_manager.set_state(
            update.effective_user.id, UserState.WAITING_FOR_WORDS_TO_ADD, {"unit_id": unit_id}
        )
        await self._safe_reply(
            update,
            "📝 请发送单词，每行一个：\n"
            "apple | n. 苹果 | /ˈæpl/\n\n"
            f"🕒 {self.settings.state_timeout_minutes} 分钟内有效，/cancel 取消。",
        )

    async def add_word_lines(self, update: Update, unit_id: int, text: str):
        """Parse word lines and add them to a unit"""
        entries, invalid_lines = self.text_parser.parse_word_lines(text)
        if not entries:
            await self._safe_reply(update, "❌ 没有识别到有效的行，格式：单词 | 释义 [| 音标]")
            return

        added_count = self.db_manager.add_words_to_unit(unit_id, entries)
        message = f"✅ 已添加 {added_count} 个单词"
        skipped = len(entries) - added_count
        if skipped:
            message += f"，{skipped} 个已存在"
        if invalid_lines:
            preview = "\n".join(invalid_lines[:5])
            message += f"\n⚠️ {len(invalid_lines)} 行格式错误：\n{preview}"
        await self._safe_reply(update, message)

    async def edit_word_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /edit_word command"""
        args = context.args or []
        word_id = safe_int(args[0]) if args else None
        entry = self.text_parser.parse_word_line(" ".join(args[1:])) if args else None
        if word_id is None or entry is None:
            await self._safe_reply(update, "用法：/edit_word <单词ID> 单词 | 释义 [| 音标]")
            return

        updated = self.db_manager.update_word(
            word_id,
            word=entry["word"],
            definition=entry["definition"],
            phonetic=entry["phonetic"] or "",
        )
        if updated:
            await self._safe_reply(update, f"✅ 已更新 {entry['word']}")
        else:
            await self._safe_reply(update, "❌ 单词不存在")

    async def delete_word_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /del_word command"""
        word_id = safe_int(context.args[0]) if context.args else None
        if word_id is None:
            await self._safe_reply(update, "用法：/del_word <单词ID>")
            return

        if self.db_manager.delete_word(word_id):
            await self._safe_reply(update, "🗑 单词已删除")
        else:
            await self._safe_reply(update, "❌ 单词不存在")

    # OCR import
    async def import_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /import command"""
        unit_id = safe_int(context.args[0]) if context.args else None
        if unit_id is None:
            await self._safe_reply(update, "用法：/import <单元ID>，然后发送单词表照片")
            return

        if not self.settings.ocr_configured:
            await self._safe_reply(update, "❌ 未配置 OCR 服务")
            return

        unit = self.db_manager.get_unit(unit_id)
        if not unit:
            await self._safe_reply(update, "❌ 单元不存在")
            return

        self.state_manager.set_state(
            update.effective_user.id, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": unit_id}
        )
        await self._safe_reply(
            update,
            f"📷 请发送「{unit['name']}」的单词表照片。\n"
            f"🕒 {self.settings.state_timeout_minutes} 分钟内有效，/cancel 取消。",
        )

    async def process_import_photo(self, update: Update):
        """Recognize a photographed word list and show the import preview"""
        telegram_id = update.effective_user.id
        unit_id = self.state_manager.get_state_data(telegram_id).get("unit_id")

        lock_info = self.lock_manager.get_lock_info(telegram_id)
        if lock_info:
            await self._safe_reply(
                update,
                f"⏳ 正在处理上一张图片（{lock_info.locked_at.strftime('%H:%M:%S')} 开始），请稍候。",
            )
            return

        with self.lock_manager.hold(telegram_id, "ocr_import") as acquired:
            if not acquired:
                await self._safe_reply(update, "⏳ 正在处理上一张图片，请稍候。")
                return

            processing_msg = await self._safe_reply(update, "🔍 正在识别图片中的单词…")
            timer = Timer()
            timer.start()

            try:
                photo_file = await update.message.photo[-1].get_file()
                image_bytes = bytes(await photo_file.download_as_bytearray())
                raw_text = await self.ocr_client.recognize(image_bytes)
            except OcrError as e:
                logger.error(f"OCR failed for user {telegram_id}: {e}")
                await self._safe_edit_message(processing_msg, "❌ 图片识别失败，请稍后重试")
                return

            words = self.text_parser.extract_english_words(raw_text)
            try:
                existing = {word["word"] for word in self.db_manager.get_words_by_unit(unit_id)}
            except StoreError as e:
                logger.error(f"Could not load words of unit {unit_id} for import: {e}")
                await self._safe_edit_message(processing_msg, GENERIC_ERROR_MESSAGE)
                return

            new_words = [word for word in words if word not in existing]
            new_words = new_words[: self.settings.max_words_per_import]

            if not new_words:
                self.state_manager.clear_state(telegram_id)
                await self._safe_edit_message(
                    processing_msg,
                    f"📭 没有识别到新单词（识别 {len(words)} 个，已存在 {len(words) - len(new_words)} 个）",
                )
                return

            processing_msg = (
                await self._safe_edit_message(
                    processing_msg, f"📝 识别到 {len(new_words)} 个新单词，正在生成释义…"
                )
                or processing_msg
            )

            glossed = await self.word_processor.gloss_words(new_words)
            timer.stop()
            logger.info(
                f"OCR import for unit {unit_id}: {len(glossed)} words in {timer.elapsed():.1f}s"
            )

            preview = [word.to_dict() for word in glossed]
            self.state_manager.set_state(
                telegram_id,
                UserState.WAITING_FOR_IMPORT_CONFIRM,
                {"unit_id": unit_id, "words": preview},
            )
            await self._safe_edit_message(
                processing_msg,
                self._format_import_preview(preview),
                parse_mode="HTML",
                reply_markup=self._import_keyboard(),
            )

    async def replace_import_preview(self, update: Update, text: str):
        """Replace the pending import with lines the admin typed"""
        telegram_id = update.effective_user.id
        entries, invalid_lines = self.text_parser.parse_word_lines(text)
        if not entries:
            await self._safe_reply(update, "❌ 没有识别到有效的行，格式：单词 | 释义 [| 音标]")
            return

        self.state_manager.update_state_data(telegram_id, words=entries)
        message = self._format_import_preview(entries)
        if invalid_lines:
            message += f"\n\n⚠️ 忽略了 {len(invalid_lines)} 行格式错误的内容"
        await self._safe_reply(
            update, message, parse_mode="HTML", reply_markup=self._import_keyboard()
        )

    async def handle_import_callback(self, update: Update, data: dict):
        """Handle confirm and cancel buttons of the import preview"""
        query = update.callback_query
        telegram_id = update.effective_user.id

        if not self.state_manager.is_confirming_import(telegram_id):
            await self._safe_edit(query, "⌛ 导入已过期，请重新 /import")
            return

        state_data = self.state_manager.get_state_data(telegram_id)
        self.state_manager.clear_state(telegram_id)

        if data.get("action") == ACTION_IMPORT_CANCEL:
            await self._safe_edit(query, "🛑 已取消导入")
            return

        words = [word for word in state_data.get("words", []) if word.get("definition")]
        skipped = len(state_data.get("words", [])) - len(words)
        added_count = self.db_manager.add_words_to_unit(state_data["unit_id"], words)

        message = f"✅ 已导入 {added_count} 个单词"
        if skipped:
            message += f"，{skipped} 个缺少释义未导入"
        await self._safe_edit(query, message)

    def _format_import_preview(self, words: list[dict]) -> str:
        lines = [f"📋 <b>导入预览</b>（{len(words)} 个）\n"]
        for word in words[:PREVIEW_LIMIT]:
            line = f"{word['word']} | {word.get('definition') or '？'}"
            if word.get("phonetic"):
                line += f" | {word['phonetic']}"
            lines.append(escape_html(line))
        if len(words) > PREVIEW_LIMIT:
            lines.append(f"…还有 {len(words) - PREVIEW_LIMIT} 个")
        lines.append("\n确认导入，或直接发送修改后的「单词 | 释义 | 音标」行替换列表。")
        return "\n".join(lines)

    def _import_keyboard(self) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton(
                        "✅ 确认导入",
                        callback_data=create_inline_keyboard_data(ACTION_IMPORT_CONFIRM),
                    ),
                    InlineKeyboardButton(
                        "❌ 取消",
                        callback_data=create_inline_keyboard_data(ACTION_IMPORT_CANCEL),
                    ),
                ]
            ]
        )
