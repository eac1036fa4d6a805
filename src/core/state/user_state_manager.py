"""
User state management for multi-step bot interactions
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from enum import Enum

logger = logging.getLogger(__name__)


class UserState(Enum):
    """Available user states"""
    IDLE = "idle"
    WAITING_FOR_WORDS_TO_ADD = "waiting_for_words_to_add"
    WAITING_FOR_OCR_IMAGE = "waiting_for_ocr_image"
    WAITING_FOR_IMPORT_CONFIRM = "waiting_for_import_confirm"


class UserStateInfo:
    """Information about user state"""

    def __init__(self, state: UserState, timestamp: datetime | None = None, data: dict | None = None):
        self.state = state
        self.timestamp = timestamp or datetime.now()
        self.data = data or {}


class UserStateManager:
    """Tracks which multi-step admin flow a user is in

    States other than IDLE expire after the configured timeout.
    """

    def __init__(self, state_timeout_minutes: int = 10):
        self.user_states: dict[int, UserStateInfo] = {}
        self.state_timeout_minutes = state_timeout_minutes
        self._cleanup_task: asyncio.Task | None = None

    async def start(self):
        """Start the state manager and cleanup task"""
        logger.info("Starting UserStateManager")
        self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def stop(self):
        """Stop the state manager and cleanup task"""
        logger.info("Stopping UserStateManager")
        if self._cleanup_task:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task

    def set_state(self, telegram_id: int, state: UserState, data: dict | None = None):
        """Set user state"""
        self.user_states[telegram_id] = UserStateInfo(state, data=data)
        logger.debug(f"Set state for user {telegram_id}: {state.value}")

    def update_state_data(self, telegram_id: int, **updates) -> bool:
        """Merge values into the data of the current state without resetting its timer"""
        state_info = self._get_live_state(telegram_id)
        if state_info is None:
            return False
        state_info.data.update(updates)
        return True

    def get_state(self, telegram_id: int) -> UserState:
        """Get user state"""
        state_info = self._get_live_state(telegram_id)
        return state_info.state if state_info else UserState.IDLE

    def get_state_data(self, telegram_id: int) -> dict:
        """Get user state data"""
        state_info = self._get_live_state(telegram_id)
        return state_info.data if state_info else {}

    def clear_state(self, telegram_id: int):
        """Clear user state"""
        if telegram_id in self.user_states:
            old_state = self.user_states.pop(telegram_id).state
            logger.debug(f"Cleared state for user {telegram_id} (was: {old_state.value})")

    def is_waiting_for_words(self, telegram_id: int) -> bool:
        """Check if an admin is about to send word lines for a unit"""
        return self.get_state(telegram_id) == UserState.WAITING_FOR_WORDS_TO_ADD

    def is_waiting_for_image(self, telegram_id: int) -> bool:
        """Check if an admin is about to send a word-list photo"""
        return self.get_state(telegram_id) == UserState.WAITING_FOR_OCR_IMAGE

    def is_confirming_import(self, telegram_id: int) -> bool:
        """Check if an admin is reviewing an OCR import preview"""
        return self.get_state(telegram_id) == UserState.WAITING_FOR_IMPORT_CONFIRM

    def _get_live_state(self, telegram_id: int) -> UserStateInfo | None:
        state_info = self.user_states.get(telegram_id)
        if state_info is None:
            return None
        if self._is_state_expired(state_info):
            self.clear_state(telegram_id)
            return None
        return state_info

    def _is_state_expired(self, state_info: UserStateInfo) -> bool:
        """Check if state has expired"""
        if state_info.state == UserState.IDLE:
            return False

        timeout = timedelta(minutes=self.state_timeout_minutes)
        return datetime.now() - state_info.timestamp > timeout

    async def _periodic_cleanup(self):
        """Periodically clean up expired states"""
        while True:
            try:
                await asyncio.sleep(60)  # Check every minute

                expired_users = [
                    telegram_id
                    for telegram_id, state_info in self.user_states.items()
                    if self._is_state_expired(state_info)
                ]

                for telegram_id in expired_users:
                    logger.info(f"Cleaning up expired state for user {telegram_id}")
                    self.clear_state(telegram_id)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in state cleanup: {e}")
