#!/usr/bin/env python3
"""
Bulk import words into a unit from a JSON or CSV file

JSON: a list of {"word", "definition", "phonetic"} objects, or {"words": [...]}.
CSV: a header row with word, definition and optional phonetic columns.
"""

import csv
import json
import os
import sys
from pathlib import Path

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.core.database.database_manager import DatabaseManager  # noqa: E402


def load_words(input_path: str) -> list[dict]:
    """Read word entries from a JSON or CSV file"""
    path = Path(input_path)
    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() == '.csv':
            rows = list(csv.DictReader(f))
        else:
            data = json.load(f)
            rows = data.get('words', []) if isinstance(data, dict) else data

    words = []
    for row in rows:
        word = (row.get('word') or '').strip()
        definition = (row.get('definition') or '').strip()
        if not word or not definition:
            print(f"  ⚠️  Skipping incomplete entry: {row}")
            continue
        words.append({
            'word': word,
            'definition': definition,
            'phonetic': (row.get('phonetic') or '').strip() or None,
        })
    return words


def import_words_data(input_path: str, unit_id: int, db_path: str) -> bool:
    """Import words from a file into an existing unit"""
    try:
        print(f"📖 Loading words from {input_path}")
        words = load_words(input_path)
        print(f"  📝 Loaded {len(words)} words")

        db_manager = DatabaseManager(db_path)
        db_manager.init_database()

        unit = db_manager.get_unit(unit_id)
        if not unit:
            print(f"❌ Unit {unit_id} not found")
            return False

        added_count = db_manager.add_words_to_unit(unit_id, words)

        print(f"✅ Imported words into unit '{unit['name']}'")
        print("📊 Import summary:")
        print(f"   • Added: {added_count}")
        print(f"   • Already present: {len(words) - added_count}")
        return True

    except (OSError, ValueError, csv.Error) as e:
        print(f"❌ Import failed: {e}")
        return False


def main():
    """Main import function"""
    if len(sys.argv) != 4:
        print("Usage: python import_words.py <json_or_csv_path> <unit_id> <database_path>")
        print("Example: python import_words.py data/unit1.csv 3 data/wordbook.db")
        sys.exit(1)

    input_path = sys.argv[1]
    db_path = sys.argv[3]
    try:
        unit_id = int(sys.argv[2])
    except ValueError:
        print(f"❌ Invalid unit ID: {sys.argv[2]}")
        sys.exit(1)

    if not Path(input_path).exists():
        print(f"❌ Input file not found: {input_path}")
        sys.exit(1)

    print(f"🚀 Starting import from {input_path} into unit {unit_id} of {db_path}")

    if import_words_data(input_path, unit_id, db_path):
        print("🎉 Import completed successfully!")
        sys.exit(0)
    else:
        print("💥 Import failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
