"""
English word extraction and admin word-list parsing
"""

import logging
import re

logger = logging.getLogger(__name__)


class WordListParser:
    """Parser for OCR output and admin-entered word lists"""

    def __init__(self):
        self.token_split_pattern = re.compile(r"[^a-zA-Z]+")
        self.word_pattern = re.compile(r"^[a-zA-Z][a-zA-Z' \-]*$")

    def extract_english_words(self, text: str, min_length: int = 2) -> list[str]:
        """
        Extract English words from free text such as OCR output

        Args:
            text: Recognized text, may contain Chinese, digits and punctuation
            min_length: Minimum token length

        Returns:
            Lowercased, de-duplicated words in alphabetical order
        """
        if not text or not text.strip():
            return []

        tokens = self.token_split_pattern.split(text)
        words = {token.lower() for token in tokens if len(token) >= min_length}

        logger.info(f"Extracted {len(words)} unique words from text of {len(text)} characters")
        return sorted(words)

    def parse_word_line(self, line: str) -> dict | None:
        """Parse `word | definition [| phonetic]`; None when the line is malformed"""
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 2 or len(parts) > 3:
            return None

        word, definition = parts[0], parts[1]
        if not self.is_valid_word(word) or not definition:
            return None

        phonetic = parts[2] if len(parts) == 3 and parts[2] else None
        return {"word": word.lower(), "definition": definition, "phonetic": phonetic}

    def parse_word_lines(self, text: str) -> tuple[list[dict], list[str]]:
        """Parse a multi-line word list into entries and the lines that failed"""
        entries = []
        invalid_lines = []

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            entry = self.parse_word_line(line)
            if entry is None:
                invalid_lines.append(line)
            else:
                entries.append(entry)

        if invalid_lines:
            logger.debug(f"Skipped {len(invalid_lines)} malformed word lines")
        return entries, invalid_lines

    def is_valid_word(self, word: str, max_length: int = 50) -> bool:
        """Letters, inner spaces, hyphens and apostrophes only"""
        return bool(word) and len(word) <= max_length and bool(self.word_pattern.match(word))


# Global instance
_parser = None


def get_text_parser() -> WordListParser:
    """Get global text parser instance"""
    global _parser
    if _parser is None:
        _parser = WordListParser()
    return _parser


def extract_english_words(text: str, min_length: int = 2) -> list[str]:
    """Convenience function to extract English words"""
    return get_text_parser().extract_english_words(text, min_length)


def parse_word_lines(text: str) -> tuple[list[dict], list[str]]:
    """Convenience function to parse admin word lines"""
    return get_text_parser().parse_word_lines(text)
