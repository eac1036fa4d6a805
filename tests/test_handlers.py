"""
Tests for learner commands, admin commands and message dispatch
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import Settings
from src.core.exceptions import DictionaryError, OcrError, StoreError, WordNotFoundError
from src.core.handlers.admin_handlers import AdminHandlers
from src.core.handlers.command_handlers import NOT_REGISTERED_MESSAGE, CommandHandlers
from src.core.handlers.message_handlers import MessageHandlers
from src.core.locks.user_lock_manager import UserLockManager
from src.core.session.session_manager import GENERIC_ERROR_MESSAGE
from src.core.session.word_pool import UnitPool, WrongWordPool
from src.core.state.user_state_manager import UserState, UserStateManager
from src.dictionary import DictionaryEntry
from src.text_parser import WordListParser
from src.word_processor import GlossedWord


def make_update(user_id=321, first_name="Lily", username="lily", text="", data=None):
    update = MagicMock()
    update.effective_user.id = user_id
    update.effective_user.first_name = first_name
    update.effective_user.username = username
    update.message.text = text
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    return update


def make_context(*args):
    context = MagicMock()
    context.args = list(args)
    return context


def last_reply(mock):
    return mock.call_args.args[1]


@pytest.fixture
def settings():
    return Settings(telegram_bot_token="test_token", allowed_users="321,123", admin_users="123")


@pytest.fixture
def session_manager():
    manager = MagicMock()
    manager.start_quiz = AsyncMock()
    manager.handle_answer = AsyncMock(return_value=False)
    manager.handle_quiz_callback = AsyncMock()
    manager.cancel_session = MagicMock(return_value=None)
    manager.replay = MagicMock(return_value=False)
    return manager


@pytest.fixture
def dictionary_client():
    client = MagicMock()
    client.lookup = AsyncMock()
    return client


@pytest.fixture
def commands(temp_db, dictionary_client, session_manager, settings):
    return CommandHandlers(
        db_manager=temp_db,
        dictionary_client=dictionary_client,
        safe_reply_callback=AsyncMock(),
        safe_edit_callback=AsyncMock(),
        session_manager=session_manager,
        state_manager=UserStateManager(),
        settings=settings,
    )


@pytest.fixture
def word_processor():
    processor = MagicMock()
    processor.gloss_words = AsyncMock()
    return processor


@pytest.fixture
def ocr_client():
    client = MagicMock()
    client.recognize = AsyncMock()
    return client


@pytest.fixture
def admin(temp_db, word_processor, ocr_client, settings):
    processing_msg = MagicMock()
    return AdminHandlers(
        db_manager=temp_db,
        word_processor=word_processor,
        ocr_client=ocr_client,
        text_parser=WordListParser(),
        safe_reply_callback=AsyncMock(return_value=processing_msg),
        safe_edit_callback=AsyncMock(),
        safe_edit_message_callback=AsyncMock(return_value=processing_msg),
        state_manager=UserStateManager(),
        lock_manager=UserLockManager(),
        settings=settings,
    )


def photo_update(user_id=123, image=b"image"):
    update = make_update(user_id)
    photo_file = MagicMock()
    photo_file.download_as_bytearray = AsyncMock(return_value=bytearray(image))
    photo = MagicMock()
    photo.get_file = AsyncMock(return_value=photo_file)
    update.message.photo = [MagicMock(), photo]
    return update


class TestStartAndHelp:
    """Registration and help"""

    @pytest.mark.asyncio
    async def test_start_registers_learner(self, commands, temp_db):
        await commands.start_command(make_update(321), make_context())

        user = temp_db.get_user_by_telegram_id(321)
        assert user["first_name"] == "Lily"
        assert user["role"] == "user"
        assert "Lily" in last_reply(commands._safe_reply)

    @pytest.mark.asyncio
    async def test_start_promotes_configured_admin(self, commands, temp_db):
        temp_db.create_user(123, "Teacher", role="user")

        await commands.start_command(make_update(123, first_name="Ms Wang"), make_context())

        user = temp_db.get_user_by_telegram_id(123)
        assert user["role"] == "admin"
        assert user["first_name"] == "Ms Wang"

    @pytest.mark.asyncio
    async def test_help_shows_admin_section_to_admins(self, commands):
        await commands.help_command(make_update(321), make_context())
        assert "/add_grade" not in last_reply(commands._safe_reply)

        await commands.help_command(make_update(123), make_context())
        assert "/add_grade" in last_reply(commands._safe_reply)


class TestBrowsing:
    """Grades, units and words"""

    @pytest.mark.asyncio
    async def test_grades_and_units(self, commands, sample_unit):
        await commands.grades_command(make_update(), make_context())
        assert "Grade 3" in last_reply(commands._safe_reply)

        await commands.units_command(make_update(), make_context(str(sample_unit["grade_id"])))
        assert "Unit 1（3 词）" in last_reply(commands._safe_reply)

    @pytest.mark.asyncio
    async def test_units_usage_and_missing_grade(self, commands):
        await commands.units_command(make_update(), make_context())
        assert last_reply(commands._safe_reply).startswith("用法")

        await commands.units_command(make_update(), make_context("99"))
        assert last_reply(commands._safe_reply) == "❌ 年级不存在"

    @pytest.mark.asyncio
    async def test_words_lists_unit_with_quiz_buttons(self, commands, sample_unit):
        await commands.words_command(make_update(), make_context(str(sample_unit["id"])))

        call = commands._safe_reply.call_args
        assert "apple" in call.args[1]
        assert "banana" in call.args[1]
        buttons = call.kwargs["reply_markup"].inline_keyboard[0]
        assert len(buttons) == 3
        for button in buttons:
            data = json.loads(button.callback_data)
            assert data["action"] == "qs"
            assert data["unit_id"] == sample_unit["id"]

    @pytest.mark.asyncio
    async def test_words_store_failure(self, commands, sample_unit):
        commands.db_manager.get_words_by_unit = MagicMock(side_effect=StoreError("locked"))

        await commands.words_command(make_update(), make_context(str(sample_unit["id"])))

        assert last_reply(commands._safe_reply) == GENERIC_ERROR_MESSAGE


class TestQuizCommands:
    """Starting unit quizzes and reviews"""

    @pytest.mark.asyncio
    async def test_unregistered_learner(self, commands, session_manager):
        await commands.quiz_command(make_update(), make_context("1"))

        assert last_reply(commands._safe_reply) == NOT_REGISTERED_MESSAGE
        session_manager.start_quiz.assert_not_called()

    @pytest.mark.asyncio
    async def test_quiz_starts_unit_pool(self, commands, temp_db, sample_unit, session_manager):
        temp_db.create_user(321, "Lily")

        await commands.quiz_command(make_update(), make_context(str(sample_unit["id"]), "flashcard"))

        _, learner, pool, mode = session_manager.start_quiz.call_args.args
        assert learner.user_id == 321
        assert isinstance(pool, UnitPool)
        assert pool.unit_id == sample_unit["id"]
        assert mode == "flashcard"

    @pytest.mark.asyncio
    async def test_quiz_rejects_unknown_mode_and_unit(self, commands, temp_db, sample_unit, session_manager):
        temp_db.create_user(321, "Lily")

        await commands.quiz_command(make_update(), make_context(str(sample_unit["id"]), "spelling"))
        assert "未知模式" in last_reply(commands._safe_reply)

        await commands.quiz_command(make_update(), make_context("99"))
        assert last_reply(commands._safe_reply) == "❌ 单元不存在"

        session_manager.start_quiz.assert_not_called()

    @pytest.mark.asyncio
    async def test_review_arguments(self, commands, temp_db, session_manager):
        temp_db.create_user(321, "Lily")

        await commands.review_command(make_update(), make_context("listen_write", "2"))

        _, _, pool, mode = session_manager.start_quiz.call_args.args
        assert isinstance(pool, WrongWordPool)
        assert pool.min_importance == 2
        assert mode == "listen_write"

    @pytest.mark.asyncio
    async def test_review_rejects_bad_importance(self, commands, temp_db, session_manager):
        temp_db.create_user(321, "Lily")

        await commands.review_command(make_update(), make_context("5"))

        assert last_reply(commands._safe_reply).startswith("用法")
        session_manager.start_quiz.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel(self, commands, session_manager):
        commands.state_manager.set_state(321, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": 1})

        await commands.cancel_command(make_update(), make_context())

        session_manager.cancel_session.assert_called_once_with(321)
        assert commands.state_manager.get_state(321) == UserState.IDLE
        assert last_reply(commands._safe_reply) == "✅ 已取消"

        session_manager.cancel_session.return_value = object()
        await commands.cancel_command(make_update(), make_context())
        assert "未保存" in last_reply(commands._safe_reply)

    @pytest.mark.asyncio
    async def test_replay_without_quiz(self, commands):
        await commands.replay_command(make_update(), make_context())
        assert "没有进行中的测验" in last_reply(commands._safe_reply)


class TestWrongWordBook:
    """Viewing and curating the wrong-word book"""

    @pytest.fixture
    def learner_with_misses(self, temp_db, sample_unit):
        temp_db.create_user(321, "Lily")
        words = temp_db.get_words_by_unit(sample_unit["id"])
        for word in words[:2]:
            temp_db.record_miss(321, word["id"])
        return words

    @pytest.mark.asyncio
    async def test_wrong_lists_entries(self, commands, learner_with_misses):
        await commands.wrong_command(make_update(), make_context())

        call = commands._safe_reply.call_args
        assert "共 2 个" in call.args[1]
        assert "apple" in call.args[1]
        assert "cat" not in call.args[1]
        # one tab row plus one delete button per entry
        assert len(call.kwargs["reply_markup"].inline_keyboard) == 3

    @pytest.mark.asyncio
    async def test_wrong_empty_book(self, commands, temp_db):
        temp_db.create_user(321, "Lily")

        await commands.wrong_command(make_update(), make_context())

        assert "这里没有错词" in last_reply(commands._safe_reply)

    @pytest.mark.asyncio
    async def test_delete_button_removes_entry(self, commands, temp_db, learner_with_misses):
        word_id = learner_with_misses[0]["id"]
        update = make_update()

        await commands.wrong_book_callback(update, {"action": "wd", "word_id": word_id, "importance": 0})

        assert temp_db.get_wrong_word_entry(321, word_id) is None
        query, text = commands._safe_edit.call_args.args
        assert query is update.callback_query
        assert "共 1 个" in text

    @pytest.mark.asyncio
    async def test_importance_and_mastered(self, commands, temp_db, learner_with_misses):
        word_id = learner_with_misses[0]["id"]

        await commands.importance_command(make_update(), make_context(str(word_id), "3"))
        assert temp_db.get_wrong_word_entry(321, word_id)["importance"] == 3

        await commands.importance_command(make_update(), make_context(str(word_id), "4"))
        assert last_reply(commands._safe_reply).startswith("用法")

        await commands.mastered_command(make_update(), make_context(str(word_id)))
        assert temp_db.get_wrong_word_entry(321, word_id)["mastered"]

        await commands.mastered_command(make_update(), make_context("9999"))
        assert last_reply(commands._safe_reply) == "❌ 错词本中没有这个单词"

    @pytest.mark.asyncio
    async def test_stats(self, commands, learner_with_misses):
        await commands.stats_command(make_update(), make_context())
        assert "错词本：2" in last_reply(commands._safe_reply)


class TestLookup:
    """Dictionary lookups"""

    @pytest.mark.asyncio
    async def test_found(self, commands, dictionary_client):
        dictionary_client.lookup.return_value = DictionaryEntry(
            word="apple",
            phonetic="/ˈæpl/",
            meanings=[("noun", "A round fruit")],
            chinese_definition="苹果",
        )

        await commands.lookup_command(make_update(), make_context("apple"))

        text = last_reply(commands._safe_reply)
        assert "<b>apple</b>" in text
        assert "苹果" in text
        assert "A round fruit" in text
        assert "发音" in text

    @pytest.mark.asyncio
    async def test_not_found_and_service_error(self, commands, dictionary_client):
        dictionary_client.lookup.side_effect = WordNotFoundError("zzz")
        await commands.lookup_command(make_update(), make_context("zzz"))
        assert last_reply(commands._safe_reply) == "❌ 单词未找到"

        dictionary_client.lookup.side_effect = DictionaryError("timeout")
        await commands.lookup_command(make_update(), make_context("apple"))
        assert last_reply(commands._safe_reply) == "❌ 查询失败，请稍后重试"

    @pytest.mark.asyncio
    async def test_usage(self, commands, dictionary_client):
        await commands.lookup_command(make_update(), make_context())
        assert last_reply(commands._safe_reply).startswith("用法")
        dictionary_client.lookup.assert_not_called()


class TestCatalogAdmin:
    """Grade, unit and word maintenance"""

    @pytest.mark.asyncio
    async def test_add_grade_and_unit(self, admin, temp_db):
        await admin.add_grade_command(make_update(123), make_context("Grade", "4", "2"))
        grade = temp_db.get_grades()[0]
        assert grade["name"] == "Grade 4"
        assert grade["sort_order"] == 2

        await admin.add_unit_command(make_update(123), make_context(str(grade["id"]), "Unit", "A"))
        units = temp_db.get_units_by_grade(grade["id"])
        assert [unit["name"] for unit in units] == ["Unit A"]

    @pytest.mark.asyncio
    async def test_usage_and_missing_grade(self, admin):
        await admin.add_grade_command(make_update(123), make_context())
        assert last_reply(admin._safe_reply).startswith("用法")

        await admin.add_unit_command(make_update(123), make_context("99", "Unit 1"))
        assert last_reply(admin._safe_reply) == "❌ 年级不存在"

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, admin, temp_db, sample_unit):
        await admin.rename_unit_command(make_update(123), make_context(str(sample_unit["id"]), "Starter"))
        assert temp_db.get_unit(sample_unit["id"])["name"] == "Starter"

        await admin.delete_grade_command(make_update(123), make_context(str(sample_unit["grade_id"])))
        assert temp_db.get_unit(sample_unit["id"]) is None

        await admin.delete_unit_command(make_update(123), make_context(str(sample_unit["id"])))
        assert last_reply(admin._safe_reply) == "❌ 单元不存在"

    @pytest.mark.asyncio
    async def test_add_words_waits_for_lines(self, admin, sample_unit):
        update = make_update(123, text=f"/add_words {sample_unit['id']}")

        await admin.add_words_command(update, make_context(str(sample_unit["id"])))

        assert admin.state_manager.is_waiting_for_words(123)
        assert admin.state_manager.get_state_data(123) == {"unit_id": sample_unit["id"]}

    @pytest.mark.asyncio
    async def test_add_words_inline_lines(self, admin, temp_db, sample_unit):
        update = make_update(
            123,
            text=f"/add_words {sample_unit['id']}\ndog | n. 狗\napple | n. 苹果\nbroken line",
        )

        await admin.add_words_command(update, make_context(str(sample_unit["id"])))

        reply = last_reply(admin._safe_reply)
        assert "已添加 1 个单词" in reply
        assert "1 个已存在" in reply
        assert "broken line" in reply
        assert len(temp_db.get_words_by_unit(sample_unit["id"])) == 4
        assert not admin.state_manager.is_waiting_for_words(123)

    @pytest.mark.asyncio
    async def test_edit_and_delete_word(self, admin, temp_db, sample_unit):
        word_id = temp_db.get_words_by_unit(sample_unit["id"])[0]["id"]

        await admin.edit_word_command(
            make_update(123), make_context(str(word_id), "apple", "|", "苹果", "|", "/ˈæp.əl/")
        )
        word = temp_db.get_word_by_id(word_id)
        assert word["definition"] == "苹果"
        assert word["phonetic"] == "/ˈæp.əl/"

        await admin.delete_word_command(make_update(123), make_context(str(word_id)))
        assert temp_db.get_word_by_id(word_id) is None

        await admin.edit_word_command(make_update(123), make_context(str(word_id)))
        assert last_reply(admin._safe_reply).startswith("用法")


class TestOcrImport:
    """Photo import with preview and confirmation"""

    @pytest.mark.asyncio
    async def test_import_requires_ocr_credentials(self, admin, sample_unit):
        await admin.import_command(make_update(123), make_context(str(sample_unit["id"])))

        assert last_reply(admin._safe_reply) == "❌ 未配置 OCR 服务"
        assert not admin.state_manager.is_waiting_for_image(123)

    @pytest.mark.asyncio
    async def test_import_waits_for_photo(self, admin, sample_unit):
        admin.settings = Settings(
            telegram_bot_token="test_token",
            alibaba_cloud_access_key_id="id",
            alibaba_cloud_access_key_secret="secret",
        )

        await admin.import_command(make_update(123), make_context(str(sample_unit["id"])))

        assert admin.state_manager.is_waiting_for_image(123)
        assert "Unit 1" in last_reply(admin._safe_reply)

    @pytest.mark.asyncio
    async def test_photo_builds_preview(self, admin, ocr_client, word_processor, sample_unit):
        admin.state_manager.set_state(123, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": sample_unit["id"]})
        ocr_client.recognize.return_value = "apple 苹果\ndog 狗\nfish"
        word_processor.gloss_words.return_value = [
            GlossedWord(word="dog", definition="n. 狗", phonetic="/dɒɡ/"),
            GlossedWord(word="fish", definition=""),
        ]

        await admin.process_import_photo(photo_update())

        ocr_client.recognize.assert_awaited_once_with(b"image")
        word_processor.gloss_words.assert_awaited_once_with(["dog", "fish"])
        assert admin.state_manager.is_confirming_import(123)
        state_data = admin.state_manager.get_state_data(123)
        assert [word["word"] for word in state_data["words"]] == ["dog", "fish"]

        call = admin._safe_edit_message.call_args
        assert "导入预览" in call.args[1]
        assert "fish | ？" in call.args[1]
        assert call.kwargs["reply_markup"] is not None
        assert not admin.lock_manager.is_locked(123)

    @pytest.mark.asyncio
    async def test_photo_with_only_known_words(self, admin, ocr_client, word_processor, sample_unit):
        admin.state_manager.set_state(123, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": sample_unit["id"]})
        ocr_client.recognize.return_value = "apple banana"

        await admin.process_import_photo(photo_update())

        word_processor.gloss_words.assert_not_called()
        assert admin.state_manager.get_state(123) == UserState.IDLE
        assert "没有识别到新单词" in last_reply(admin._safe_edit_message)

    @pytest.mark.asyncio
    async def test_ocr_failure(self, admin, ocr_client, word_processor, sample_unit):
        admin.state_manager.set_state(123, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": sample_unit["id"]})
        ocr_client.recognize.side_effect = OcrError("throttled")

        await admin.process_import_photo(photo_update())

        assert last_reply(admin._safe_edit_message) == "❌ 图片识别失败，请稍后重试"
        word_processor.gloss_words.assert_not_called()
        assert not admin.lock_manager.is_locked(123)

    @pytest.mark.asyncio
    async def test_store_failure_during_import(self, admin, ocr_client, word_processor, sample_unit):
        admin.state_manager.set_state(123, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": sample_unit["id"]})
        ocr_client.recognize.return_value = "dog"
        admin.db_manager.get_words_by_unit = MagicMock(side_effect=StoreError("locked"))

        await admin.process_import_photo(photo_update())

        assert last_reply(admin._safe_edit_message) == GENERIC_ERROR_MESSAGE
        word_processor.gloss_words.assert_not_called()
        assert not admin.lock_manager.is_locked(123)

    @pytest.mark.asyncio
    async def test_photo_while_locked(self, admin, ocr_client):
        with admin.lock_manager.hold(123, "ocr_import"):
            await admin.process_import_photo(photo_update())

        assert "正在处理上一张图片" in last_reply(admin._safe_reply)
        ocr_client.recognize.assert_not_called()

    @pytest.mark.asyncio
    async def test_typed_lines_replace_preview(self, admin):
        admin.state_manager.set_state(
            123, UserState.WAITING_FOR_IMPORT_CONFIRM, {"unit_id": 1, "words": []}
        )

        await admin.replace_import_preview(make_update(123), "dog | n. 狗\nnonsense")

        words = admin.state_manager.get_state_data(123)["words"]
        assert words == [{"word": "dog", "definition": "n. 狗", "phonetic": None}]
        assert "忽略了 1 行" in last_reply(admin._safe_reply)

    @pytest.mark.asyncio
    async def test_confirm_skips_words_without_definition(self, admin, temp_db, sample_unit):
        admin.state_manager.set_state(
            123,
            UserState.WAITING_FOR_IMPORT_CONFIRM,
            {
                "unit_id": sample_unit["id"],
                "words": [
                    {"word": "dog", "definition": "n. 狗", "phonetic": "/dɒɡ/"},
                    {"word": "fish", "definition": "", "phonetic": None},
                ],
            },
        )

        await admin.handle_import_callback(make_update(123), {"action": "io"})

        words = [word["word"] for word in temp_db.get_words_by_unit(sample_unit["id"])]
        assert "dog" in words
        assert "fish" not in words
        assert last_reply(admin._safe_edit) == "✅ 已导入 1 个单词，1 个缺少释义未导入"
        assert admin.state_manager.get_state(123) == UserState.IDLE

    @pytest.mark.asyncio
    async def test_cancel_and_expired(self, admin, temp_db, sample_unit):
        admin.state_manager.set_state(
            123,
            UserState.WAITING_FOR_IMPORT_CONFIRM,
            {"unit_id": sample_unit["id"], "words": [{"word": "dog", "definition": "狗"}]},
        )

        await admin.handle_import_callback(make_update(123), {"action": "ic"})
        assert last_reply(admin._safe_edit) == "🛑 已取消导入"
        assert len(temp_db.get_words_by_unit(sample_unit["id"])) == 3

        await admin.handle_import_callback(make_update(123), {"action": "io"})
        assert "已过期" in last_reply(admin._safe_edit)


class TestMessageDispatch:
    """Routing of text, photos and button presses"""

    @pytest.fixture
    def messages(self, session_manager):
        command_handlers = MagicMock()
        command_handlers.is_admin = MagicMock(return_value=False)
        command_handlers.start_quiz_callback = AsyncMock()
        command_handlers.wrong_book_callback = AsyncMock()
        admin_handlers = MagicMock()
        admin_handlers.add_word_lines = AsyncMock()
        admin_handlers.replace_import_preview = AsyncMock()
        admin_handlers.process_import_photo = AsyncMock()
        admin_handlers.handle_import_callback = AsyncMock()
        return MessageHandlers(
            safe_reply_callback=AsyncMock(),
            command_handlers=command_handlers,
            admin_handlers=admin_handlers,
            state_manager=UserStateManager(),
            session_manager=session_manager,
        )

    @pytest.mark.asyncio
    async def test_pending_word_lines_go_to_admin(self, messages, session_manager):
        messages.state_manager.set_state(123, UserState.WAITING_FOR_WORDS_TO_ADD, {"unit_id": 7})
        update = make_update(123, text="dog | 狗")

        await messages.handle_message(update, make_context())

        messages.admin_handlers.add_word_lines.assert_awaited_once_with(update, 7, "dog | 狗")
        assert messages.state_manager.get_state(123) == UserState.IDLE
        session_manager.handle_answer.assert_not_called()

    @pytest.mark.asyncio
    async def test_text_during_import_confirmation(self, messages):
        messages.state_manager.set_state(123, UserState.WAITING_FOR_IMPORT_CONFIRM, {"unit_id": 7})
        update = make_update(123, text="dog | 狗")

        await messages.handle_message(update, make_context())

        messages.admin_handlers.replace_import_preview.assert_awaited_once_with(update, "dog | 狗")

    @pytest.mark.asyncio
    async def test_text_is_quiz_answer(self, messages, session_manager):
        session_manager.handle_answer.return_value = True
        update = make_update(text="apple")

        await messages.handle_message(update, make_context())

        session_manager.handle_answer.assert_awaited_once_with(update, "apple")
        messages._safe_reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_text_without_quiz_gets_hint(self, messages):
        await messages.handle_message(make_update(text="hello"), make_context())
        assert "没有进行中的测验" in last_reply(messages._safe_reply)

    @pytest.mark.asyncio
    async def test_photo_without_import(self, messages):
        await messages.handle_photo(make_update(), make_context())

        assert "/import" in last_reply(messages._safe_reply)
        messages.admin_handlers.process_import_photo.assert_not_called()

    @pytest.mark.asyncio
    async def test_photo_during_import(self, messages):
        messages.state_manager.set_state(123, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": 7})
        update = make_update(123)

        await messages.handle_photo(update, make_context())

        messages.admin_handlers.process_import_photo.assert_awaited_once_with(update)

    @pytest.mark.asyncio
    async def test_callback_routing(self, messages, session_manager):
        quiz_update = make_update(data=json.dumps({"action": "qn"}))
        await messages.handle_callback_query(quiz_update, make_context())
        session_manager.handle_quiz_callback.assert_awaited_once_with(quiz_update.callback_query)
        quiz_update.callback_query.answer.assert_awaited_once()

        start_update = make_update(data=json.dumps({"action": "qs", "unit_id": 1, "mode": "flashcard"}))
        await messages.handle_callback_query(start_update, make_context())
        messages.command_handlers.start_quiz_callback.assert_awaited_once_with(
            start_update, {"action": "qs", "unit_id": 1, "mode": "flashcard"}
        )

        wrong_update = make_update(data=json.dumps({"action": "wt", "importance": 2}))
        await messages.handle_callback_query(wrong_update, make_context())
        messages.command_handlers.wrong_book_callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_import_buttons_need_admin(self, messages):
        update = make_update(321, data=json.dumps({"action": "io"}))

        await messages.handle_callback_query(update, make_context())
        messages.admin_handlers.handle_import_callback.assert_not_called()

        messages.command_handlers.is_admin.return_value = True
        await messages.handle_callback_query(update, make_context())
        messages.admin_handlers.handle_import_callback.assert_awaited_once_with(update, {"action": "io"})

    @pytest.mark.asyncio
    async def test_unknown_callback_data_is_ignored(self, messages, session_manager):
        await messages.handle_callback_query(make_update(data="legacy_button"), make_context())
        await messages.handle_callback_query(make_update(data=json.dumps({"action": "zz"})), make_context())

        session_manager.handle_quiz_callback.assert_not_called()
        messages.command_handlers.start_quiz_callback.assert_not_called()
