"""
Utility functions for the Vocabulary Book Bot
"""

import asyncio
import html
import inspect
import json
import logging
import time
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)

IMPORTANCE_STARS = {1: "★", 2: "★★", 3: "★★★"}


def escape_html(text: str | None) -> str:
    """Escape text for Telegram HTML parse mode"""
    if not text:
        return ""
    return html.escape(text, quote=False)


def format_word_line(word_data: dict[str, Any], show_id: bool = False) -> str:
    """Format a word with phonetic and definition on one line"""
    word = escape_html(word_data.get("word", ""))
    phonetic = word_data.get("phonetic")
    definition = escape_html(word_data.get("definition", ""))

    result = f"<code>{word_data['id']}</code> " if show_id and "id" in word_data else ""
    result += f"<b>{word}</b>"
    if phonetic:
        result += f" {escape_html(phonetic)}"
    if definition:
        result += f" · {definition}"
    return result


def format_quiz_result(result, mode_label: str) -> str:
    """Format a finished quiz for the learner"""
    text = f"""✅ <b>测验完成！</b>

📝 模式：<b>{escape_html(mode_label)}</b>
• 题目数：<b>{result.total}</b>
• 答对：<b>{result.correct_count}</b>
• 正确率：<b>{result.accuracy}%</b>"""

    wrong = result.wrong_outcomes
    if wrong:
        text += "\n\n❌ <b>答错的单词：</b>"
        for outcome in wrong:
            line = f"\n• <b>{escape_html(outcome.word)}</b> {escape_html(outcome.definition)}"
            if outcome.user_answer:
                line += f"（你的答案：{escape_html(outcome.user_answer)}）"
            text += line
    elif result.total:
        text += "\n\n🎉 全部答对！"

    return text


def format_user_stats(stats: dict[str, Any]) -> str:
    """Format the learner dashboard"""
    result = "📊 <b>学习统计</b>\n\n"
    result += f"📝 今日答题：{stats.get('today_count', 0)}\n"
    result += f"✅ 今日答对：{stats.get('today_correct', 0)}\n"
    result += f"🎯 今日正确率：{stats.get('today_accuracy', 0)}%\n"
    result += f"📕 错词本：{stats.get('total_wrong', 0)}\n"
    result += f"⭐ 重点错词：{stats.get('important_wrong', 0)}\n"
    return result


def format_wrong_word(entry: dict[str, Any]) -> str:
    """Format one wrong-word book entry"""
    stars = IMPORTANCE_STARS.get(entry.get("importance", 1), "★")
    line = format_word_line(entry, show_id=False)
    return (
        f"{stars} {line}\n"
        f"   错 {entry.get('wrong_count', 0)} 次 · 连对 {entry.get('correct_streak', 0)} 次"
        f" · ID <code>{entry['word_id']}</code>"
    )


def extract_json_safely(json_str: str) -> dict[str, Any]:
    """Safely extract JSON from string"""
    if not json_str:
        return {}

    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Failed to parse JSON: {json_str}")
        return {}


def format_json_safely(data: Any) -> str:
    """Safely format data as JSON string"""
    try:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        logger.warning(f"Failed to serialize to JSON: {data}")
        return "{}"


def retry_on_exception(max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """Decorator for retrying functions on exception"""

    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        wait_time = delay * (backoff**attempt)
                        logger.warning(
                            f"Attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s..."
                        )
                        await asyncio.sleep(wait_time)
                    else:
                        logger.error(
                            f"All {max_retries} attempts failed for {func.__name__}"
                        )

            raise last_exception

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        wait_time = delay * (backoff**attempt)
                        logger.warning(
                            f"Attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s..."
                        )
                        time.sleep(wait_time)
                    else:
                        logger.error(
                            f"All {max_retries} attempts failed for {func.__name__}"
                        )

            raise last_exception

        # Return appropriate wrapper based on function type
        if inspect.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


def rate_limit(calls_per_minute: int = 60):
    """Rate limiting decorator"""
    min_interval = 60.0 / calls_per_minute
    last_called = {}

    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            key = f"{func.__name__}_{id(args[0]) if args else 'global'}"
            now = time.time()

            if key in last_called:
                elapsed = now - last_called[key]
                if elapsed < min_interval:
                    await asyncio.sleep(min_interval - elapsed)

            last_called[key] = time.time()
            return await func(*args, **kwargs)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            key = f"{func.__name__}_{id(args[0]) if args else 'global'}"
            now = time.time()

            if key in last_called:
                elapsed = now - last_called[key]
                if elapsed < min_interval:
                    time.sleep(min_interval - elapsed)

            last_called[key] = time.time()
            return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


def safe_int(value: Any, default: int | None = None) -> int | None:
    """Safely convert value to integer"""
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


# Compact keys keep callback data under Telegram's 64 byte limit
CALLBACK_KEY_MAPPINGS = {
    "action": "a",
    "word_id": "w",
    "known": "k",
    "importance": "p",
    "unit_id": "u",
    "grade_id": "g",
    "mode": "m",
}


def create_inline_keyboard_data(action: str, **kwargs) -> str:
    """Create callback data for inline keyboard with compact format"""
    compact_data = {"a": action}

    for key, value in kwargs.items():
        if isinstance(value, bool):
            value = int(value)
        compact_data[CALLBACK_KEY_MAPPINGS.get(key, key)] = value

    result = format_json_safely(compact_data)
    if len(result.encode("utf-8")) > 64:
        logger.warning(f"Callback data exceeds 64 bytes: {result}")
    return result


def parse_inline_keyboard_data(callback_data: str) -> dict[str, Any]:
    """Parse callback data from inline keyboard with compact format support"""
    raw_data = extract_json_safely(callback_data)
    reverse_mappings = {short: full for full, short in CALLBACK_KEY_MAPPINGS.items()}
    return {reverse_mappings.get(key, key): value for key, value in raw_data.items()}


class Timer:
    """Simple timer for measuring duration"""

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def start(self):
        """Start the timer"""
        self.start_time = time.time()
        self.end_time = None

    def stop(self):
        """Stop the timer"""
        if self.start_time is not None:
            self.end_time = time.time()

    def elapsed(self) -> float | None:
        """Get elapsed time in seconds"""
        if self.start_time is None:
            return None

        end = self.end_time or time.time()
        return end - self.start_time


def log_execution_time(func):
    """Decorator to log function execution time"""

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        timer = Timer()
        timer.start()
        try:
            result = await func(*args, **kwargs)
            timer.stop()
            logger.debug(f"{func.__name__} executed in {timer.elapsed():.3f}s")
            return result
        except Exception as e:
            timer.stop()
            logger.error(f"{func.__name__} failed after {timer.elapsed():.3f}s: {e}")
            raise

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        timer = Timer()
        timer.start()
        try:
            result = func(*args, **kwargs)
            timer.stop()
            logger.debug(f"{func.__name__} executed in {timer.elapsed():.3f}s")
            return result
        except Exception as e:
            timer.stop()
            logger.error(f"{func.__name__} failed after {timer.elapsed():.3f}s: {e}")
            raise

    if inspect.iscoroutinefunction(func):
        return async_wrapper
    else:
        return sync_wrapper
