"""
Word glossing for OCR imports: OpenAI when configured, dictionary otherwise
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from openai import AsyncOpenAI

from .config import get_settings
from .database import DatabaseManager, get_db_manager
from .dictionary import DictionaryClient, get_dictionary_client
from .utils import log_execution_time, rate_limit, retry_on_exception

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 30


@dataclass
class GlossedWord:
    """An English word with the Chinese gloss proposed for import"""

    word: str
    definition: str
    phonetic: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"word": self.word, "definition": self.definition, "phonetic": self.phonetic}


class WordProcessor:
    """Glosses English words in Chinese for the import preview"""

    def __init__(
        self,
        api_key: str | None = None,
        dictionary_client: DictionaryClient | None = None,
        db_manager: DatabaseManager | None = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.openai_api_key
        self.client = (
            AsyncOpenAI(api_key=api_key, timeout=settings.api_timeout) if api_key else None
        )
        self.dictionary_client = dictionary_client or get_dictionary_client()
        self.db_manager = db_manager
        self.model = settings.openai_model
        self.max_tokens = settings.openai_max_tokens
        self.temperature = settings.openai_temperature

        # Rate limiting
        self.max_requests_per_day = settings.max_openai_requests_per_day
        self.request_count = 0
        self.count_date = date.today()

    @property
    def uses_openai(self) -> bool:
        return self.client is not None

    @log_execution_time
    async def gloss_words(self, words: list[str]) -> list[GlossedWord]:
        """
        Gloss words in their given order

        Words already in the catalog reuse their stored definition. The rest
        go to OpenAI in batches when a key is configured; anything still
        missing is looked up in the dictionary. Words nobody could gloss come
        back with an empty definition so the admin can fill them in.
        """
        if not words:
            return []

        glosses = self._glosses_from_catalog(words)
        missing = [word for word in words if word not in glosses]

        if missing and self.uses_openai:
            for i in range(0, len(missing), MAX_BATCH_SIZE):
                batch = missing[i : i + MAX_BATCH_SIZE]
                glosses.update(await self.gloss_batch(batch))
            missing = [word for word in words if word not in glosses]

        if missing:
            entries = await self.dictionary_client.lookup_many(missing)
            for word, entry in zip(missing, entries, strict=True):
                glosses[word] = GlossedWord(
                    word=word,
                    definition=entry.chinese_definition,
                    phonetic=entry.phonetic or None,
                )

        return [glosses.get(word) or GlossedWord(word=word, definition="") for word in words]

    def _glosses_from_catalog(self, words: list[str]) -> dict[str, GlossedWord]:
        db_manager = self.db_manager or get_db_manager()
        glosses = {}
        for word in words:
            matches = [w for w in db_manager.search_words(word, limit=5) if w["word"] == word]
            if matches:
                existing = matches[0]
                glosses[word] = GlossedWord(
                    word=word,
                    definition=existing["definition"],
                    phonetic=existing["phonetic"],
                )
        if glosses:
            logger.info(f"Reusing {len(glosses)} definitions from the catalog")
        return glosses

    async def gloss_batch(self, words: list[str]) -> dict[str, GlossedWord]:
        """Gloss one batch with OpenAI; returns whatever could be parsed"""
        if date.today() != self.count_date:
            self.reset_request_count()

        if self.request_count >= self.max_requests_per_day:
            logger.warning("Daily OpenAI request limit reached")
            return {}

        try:
            content = await self._request_glosses(words)
        except Exception as e:
            logger.error(f"Error glossing batch of words {words}: {e}")
            return {}

        if not content:
            logger.error("Empty response content from OpenAI")
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse OpenAI batch response as JSON: {e}")
            logger.debug(f"Response content preview: {content[:500]}...")
            return {}

        return self._parse_batch_response(words, data)

    @retry_on_exception(max_retries=3, delay=1.0, backoff=2.0)
    @rate_limit(calls_per_minute=20)
    async def _request_glosses(self, words: list[str]) -> str | None:
        logger.info(f"Glossing batch of {len(words)} words with OpenAI")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self._get_batch_system_prompt()},
                {"role": "user", "content": self._create_batch_prompt(words)},
            ],
            max_completion_tokens=self.max_tokens * min(4, len(words) // 10 + 1),
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        self.request_count += 1

        if not response.choices:
            logger.error("No response choices from OpenAI")
            return None
        return response.choices[0].message.content

    def _get_batch_system_prompt(self) -> str:
        return (
            "You write vocabulary lists for Chinese primary and middle school "
            "students learning English. For every English word you are given, "
            "reply with a concise Simplified Chinese definition (at most 20 "
            "characters, senses separated by '；', part of speech prefix such as "
            "'n.' or 'v.' allowed) and its IPA pronunciation between slashes. "
            "Reply with one JSON object keyed by the exact input word, each value "
            'shaped as {"definition": "...", "phonetic": "/.../"}.'
        )

    def _create_batch_prompt(self, words: list[str]) -> str:
        return "Words:\n" + "\n".join(words)

    def _parse_batch_response(
        self, words: list[str], data: dict[str, Any]
    ) -> dict[str, GlossedWord]:
        """Parse OpenAI batch response into GlossedWord objects"""
        glosses = {}

        for word in words:
            word_data = data.get(word)
            if not isinstance(word_data, dict):
                logger.warning(f"Word '{word}' not found in batch response - skipping")
                continue

            definition = str(word_data.get("definition") or "").strip()
            if not definition:
                logger.warning(f"Empty definition for word '{word}' - skipping")
                continue

            glosses[word] = GlossedWord(
                word=word,
                definition=definition,
                phonetic=str(word_data.get("phonetic") or "").strip() or None,
            )

        return glosses

    def reset_request_count(self) -> None:
        """Reset daily request count"""
        self.request_count = 0
        self.count_date = date.today()
        logger.info("Request count reset")


# Global processor instance
_word_processor = None


def get_word_processor() -> WordProcessor:
    """Get global word processor instance"""
    global _word_processor
    if _word_processor is None:
        _word_processor = WordProcessor()
    return _word_processor


async def gloss_words(words: list[str]) -> list[GlossedWord]:
    """Convenience function to gloss words"""
    return await get_word_processor().gloss_words(words)
