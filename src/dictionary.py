"""
Dictionary lookup and translation client
"""

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from .config import get_settings
from .core.exceptions import DictionaryError, WordNotFoundError
from .utils import log_execution_time

logger = logging.getLogger(__name__)


@dataclass
class DictionaryEntry:
    """Dictionary data for one English word"""

    word: str
    phonetic: str = ""
    meanings: list[tuple[str, str]] = field(default_factory=list)
    chinese_definition: str = ""
    audio_url: str = ""

    @property
    def first_definition(self) -> str:
        return self.meanings[0][1] if self.meanings else ""


class DictionaryClient:
    """Looks words up in the free dictionary API and translates the first sense"""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.settings = get_settings()
        self._client = client or httpx.AsyncClient(timeout=self.settings.api_timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def lookup(self, word: str) -> DictionaryEntry:
        """Look up a word; raises WordNotFoundError when the dictionary has no entry"""
        word = word.strip().lower()
        if not word:
            raise WordNotFoundError("Empty word")

        url = f"{self.settings.dictionary_api_url.rstrip('/')}/{quote(word)}"
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            raise DictionaryError(f"Dictionary request failed: {e}") from e

        if not response.is_success:
            raise WordNotFoundError(f"Word not found: {word}")

        try:
            data = response.json()
        except ValueError as e:
            raise DictionaryError(f"Invalid dictionary response for {word}") from e

        entry = self._parse_entry(word, data)
        if entry.first_definition:
            entry.chinese_definition = await self.translate(entry.first_definition)
        return entry

    @log_execution_time
    async def lookup_many(self, words: list[str]) -> list[DictionaryEntry]:
        """Look up several words concurrently; failed words get an empty entry"""
        results = await asyncio.gather(
            *(self.lookup(word) for word in words), return_exceptions=True
        )

        entries = []
        for word, result in zip(words, results, strict=True):
            if isinstance(result, Exception):
                logger.debug(f"Lookup failed for {word}: {result}")
                entries.append(DictionaryEntry(word=word.strip().lower()))
            else:
                entries.append(result)
        return entries

    async def translate(self, text: str) -> str:
        """Translate English text to Chinese; returns an empty string on any failure"""
        try:
            response = await self._client.get(
                self.settings.translation_api_url,
                params={"q": text, "langpair": self.settings.translation_langpair},
            )
            if not response.is_success:
                logger.warning(f"Translation failed with status {response.status_code}")
                return ""
            data = response.json()
            return (data.get("responseData") or {}).get("translatedText") or ""
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Translation failed: {e}")
            return ""

    @staticmethod
    def _parse_entry(word: str, data) -> DictionaryEntry:
        if not isinstance(data, list) or not data:
            raise WordNotFoundError(f"Word not found: {word}")

        raw = data[0]
        phonetics = raw.get("phonetics") or []
        phonetic = raw.get("phonetic") or next(
            (p["text"] for p in phonetics if p.get("text")), ""
        )
        audio_url = next((p["audio"] for p in phonetics if p.get("audio")), "")

        meanings = []
        for meaning in raw.get("meanings") or []:
            definitions = meaning.get("definitions") or []
            definition = definitions[0].get("definition", "") if definitions else ""
            meanings.append((meaning.get("partOfSpeech", ""), definition))

        return DictionaryEntry(
            word=raw.get("word") or word,
            phonetic=phonetic,
            meanings=meanings,
            audio_url=audio_url,
        )


# Global instance
_dictionary_client = None


def get_dictionary_client() -> DictionaryClient:
    """Get global dictionary client instance"""
    global _dictionary_client
    if _dictionary_client is None:
        _dictionary_client = DictionaryClient()
    return _dictionary_client
