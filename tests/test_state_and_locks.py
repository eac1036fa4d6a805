"""
Tests for user state and per-user locks
"""

from datetime import datetime, timedelta

import pytest

from src.core.locks.user_lock_manager import UserLockManager
from src.core.state.user_state_manager import UserState, UserStateManager


class TestUserStateManager:
    """Multi-step admin flows"""

    def test_default_state_is_idle(self):
        manager = UserStateManager()
        assert manager.get_state(321) == UserState.IDLE
        assert manager.get_state_data(321) == {}

    def test_set_and_clear_state(self):
        manager = UserStateManager()
        manager.set_state(321, UserState.WAITING_FOR_OCR_IMAGE, {"unit_id": 4})

        assert manager.is_waiting_for_image(321)
        assert not manager.is_waiting_for_words(321)
        assert manager.get_state_data(321) == {"unit_id": 4}

        manager.clear_state(321)
        assert manager.get_state(321) == UserState.IDLE

    def test_update_state_data(self):
        manager = UserStateManager()
        assert not manager.update_state_data(321, words=[])

        manager.set_state(321, UserState.WAITING_FOR_IMPORT_CONFIRM, {"unit_id": 4})
        assert manager.update_state_data(321, words=[{"word": "cat"}])

        assert manager.is_confirming_import(321)
        assert manager.get_state_data(321) == {"unit_id": 4, "words": [{"word": "cat"}]}

    def test_state_expires(self):
        manager = UserStateManager(state_timeout_minutes=10)
        manager.set_state(321, UserState.WAITING_FOR_WORDS_TO_ADD, {"unit_id": 1})
        manager.user_states[321].timestamp = datetime.now() - timedelta(minutes=11)

        assert manager.get_state(321) == UserState.IDLE
        assert 321 not in manager.user_states

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        manager = UserStateManager()
        await manager.start()
        assert manager._cleanup_task is not None
        await manager.stop()
        assert manager._cleanup_task.cancelled() or manager._cleanup_task.done()


class TestUserLockManager:
    """One OCR import per user"""

    def test_hold_locks_the_user(self):
        manager = UserLockManager()

        with manager.hold(321, "ocr_import") as acquired:
            assert acquired
            assert manager.is_locked(321)
            assert manager.get_lock_info(321).operation == "ocr_import"
            with manager.hold(321, "ocr_import") as nested:
                assert not nested
            assert manager.is_locked(321)

        assert not manager.is_locked(321)
        assert manager.get_lock_info(321) is None

    def test_locks_are_per_user(self):
        manager = UserLockManager()

        with manager.hold(321, "ocr_import"), manager.hold(123, "ocr_import") as other:
            assert other
            assert manager.is_locked(321)
            assert manager.is_locked(123)

    def test_hold_releases_on_error(self):
        manager = UserLockManager()

        with pytest.raises(RuntimeError):
            with manager.hold(321, "ocr_import"):
                raise RuntimeError("boom")

        assert not manager.is_locked(321)

    def test_expired_lock_is_dropped(self):
        manager = UserLockManager(lock_timeout_minutes=5)

        with manager.hold(321, "ocr_import"):
            manager._locks[321].locked_at = datetime.now() - timedelta(minutes=6)
            assert not manager.is_locked(321)

            with manager.hold(321, "ocr_import") as acquired:
                assert acquired
            assert not manager.is_locked(321)

    def test_stale_holder_keeps_newer_lock(self):
        manager = UserLockManager(lock_timeout_minutes=5)

        stale = manager.hold(321, "ocr_import")
        assert stale.__enter__()
        manager._locks[321].locked_at = datetime.now() - timedelta(minutes=6)

        with manager.hold(321, "ocr_import") as acquired:
            assert acquired
            stale.__exit__(None, None, None)
            assert manager.is_locked(321)
