"""
Unit tests for word processor
"""

import json
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.dictionary import DictionaryEntry
from src.word_processor import GlossedWord, WordProcessor, get_word_processor


def openai_response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def dictionary_client():
    client = MagicMock()

    async def lookup_many(words):
        return [
            DictionaryEntry(word=word, phonetic="/dɒɡ/", chinese_definition="狗")
            if word == "dog"
            else DictionaryEntry(word=word)
            for word in words
        ]

    client.lookup_many = AsyncMock(side_effect=lookup_many)
    return client


class TestGlossedWord:
    """Test GlossedWord dataclass"""

    def test_to_dict(self):
        word = GlossedWord(word="apple", definition="n. 苹果", phonetic="/ˈæpl/")
        assert word.to_dict() == {
            "word": "apple",
            "definition": "n. 苹果",
            "phonetic": "/ˈæpl/",
        }


class TestWordProcessor:
    """Glossing pipeline"""

    def test_without_api_key_uses_dictionary_only(self, dictionary_client, temp_db):
        processor = WordProcessor(dictionary_client=dictionary_client, db_manager=temp_db)
        assert not processor.uses_openai
        assert processor.client is None

    @pytest.mark.asyncio
    async def test_catalog_then_dictionary(self, dictionary_client, temp_db, sample_unit):
        processor = WordProcessor(dictionary_client=dictionary_client, db_manager=temp_db)

        glossed = await processor.gloss_words(["dog", "apple", "zzz"])

        assert [g.word for g in glossed] == ["dog", "apple", "zzz"]
        assert glossed[0] == GlossedWord(word="dog", definition="狗", phonetic="/dɒɡ/")
        assert glossed[1].definition == "n. 苹果"
        assert glossed[2].definition == ""
        dictionary_client.lookup_many.assert_awaited_once_with(["dog", "zzz"])

    @pytest.mark.asyncio
    async def test_openai_batch_with_dictionary_fallback(self, dictionary_client, temp_db):
        processor = WordProcessor(
            api_key="test_key", dictionary_client=dictionary_client, db_manager=temp_db
        )
        processor.client = MagicMock()
        processor.client.chat.completions.create = AsyncMock(
            return_value=openai_response(
                json.dumps(
                    {
                        "cat": {"definition": "n. 猫", "phonetic": "/kæt/"},
                        "dog": {"definition": "", "phonetic": ""},
                    }
                )
            )
        )

        glossed = await processor.gloss_words(["cat", "dog"])

        assert glossed[0] == GlossedWord(word="cat", definition="n. 猫", phonetic="/kæt/")
        assert glossed[1].definition == "狗"
        assert processor.request_count == 1
        dictionary_client.lookup_many.assert_awaited_once_with(["dog"])

        kwargs = processor.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "cat\ndog" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(self, dictionary_client, temp_db):
        processor = WordProcessor(
            api_key="test_key", dictionary_client=dictionary_client, db_manager=temp_db
        )
        processor.client = MagicMock()
        processor.client.chat.completions.create = AsyncMock(
            return_value=openai_response("not json")
        )

        glossed = await processor.gloss_words(["dog"])

        assert glossed[0].definition == "狗"

    @pytest.mark.asyncio
    async def test_daily_limit(self, dictionary_client, temp_db):
        processor = WordProcessor(
            api_key="test_key", dictionary_client=dictionary_client, db_manager=temp_db
        )
        processor.client = MagicMock()
        processor.client.chat.completions.create = AsyncMock()
        processor.request_count = processor.max_requests_per_day

        assert await processor.gloss_batch(["cat"]) == {}
        processor.client.chat.completions.create.assert_not_called()

        processor.reset_request_count()
        assert processor.request_count == 0

    @pytest.mark.asyncio
    async def test_daily_limit_resets_next_day(self, dictionary_client, temp_db):
        processor = WordProcessor(
            api_key="test_key", dictionary_client=dictionary_client, db_manager=temp_db
        )
        processor.client = MagicMock()
        processor.client.chat.completions.create = AsyncMock(
            return_value=openai_response(json.dumps({"cat": {"definition": "n. 猫"}}))
        )
        processor.request_count = processor.max_requests_per_day
        processor.count_date = date.today() - timedelta(days=1)

        glosses = await processor.gloss_batch(["cat"])

        assert glosses["cat"].definition == "n. 猫"
        assert processor.request_count == 1
        assert processor.count_date == date.today()

    @pytest.mark.asyncio
    async def test_empty_input(self, dictionary_client, temp_db):
        processor = WordProcessor(dictionary_client=dictionary_client, db_manager=temp_db)
        assert await processor.gloss_words([]) == []
        dictionary_client.lookup_many.assert_not_called()

    def test_parse_batch_response_skips_bad_entries(self, dictionary_client, temp_db):
        processor = WordProcessor(dictionary_client=dictionary_client, db_manager=temp_db)

        glosses = processor._parse_batch_response(
            ["cat", "dog", "fox"],
            {"cat": {"definition": " n. 猫 "}, "dog": "狗", "fox": {"definition": None}},
        )

        assert list(glosses) == ["cat"]
        assert glosses["cat"].definition == "n. 猫"
        assert glosses["cat"].phonetic is None

    def test_get_word_processor_singleton(self):
        assert get_word_processor() is get_word_processor()
