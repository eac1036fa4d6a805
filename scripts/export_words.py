#!/usr/bin/env python3
"""
Export catalog, quiz records and wrong-word ledger to JSON
"""

import json
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

EXPORTED_TABLES = ["users", "grades", "units", "words", "quiz_records", "wrong_words"]


def export_words_data(db_path: str, output_path: str) -> bool:
    """Export all tables of the vocabulary book to JSON"""
    try:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row  # Return rows as dictionaries

        print(f"📖 Exporting data from {db_path}")

        export_data = {
            "export_info": {
                "exported_at": datetime.now().isoformat(),
                "database_path": db_path,
                "script_version": "3.0",
            },
        }
        statistics = {}
        for table in EXPORTED_TABLES:
            order_column = "telegram_id" if table == "users" else "id"
            cursor = conn.execute(f"SELECT * FROM {table} ORDER BY {order_column}")
            rows = [dict(row) for row in cursor.fetchall()]
            export_data[table] = rows
            statistics[f"total_{table}"] = len(rows)
            print(f"  📝 Found {len(rows)} {table} rows")

        export_data["statistics"] = statistics
        conn.close()

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(export_data, f, indent=2, ensure_ascii=False, default=str)

        print(f"✅ Successfully exported data to {output_path}")
        return True

    except (OSError, sqlite3.Error) as e:
        print(f"❌ Export failed: {e}")
        return False


def main():
    """Main export function"""
    if len(sys.argv) != 3:
        print("Usage: python export_words.py <database_path> <output_json_path>")
        print("Example: python export_words.py data/wordbook.db data/wordbook.json")
        sys.exit(1)

    db_path = sys.argv[1]
    output_path = sys.argv[2]

    if not Path(db_path).exists():
        print(f"❌ Database file not found: {db_path}")
        sys.exit(1)

    print(f"🚀 Starting export from {db_path} to {output_path}")

    if export_words_data(db_path, output_path):
        print("🎉 Export completed successfully!")
        sys.exit(0)
    else:
        print("💥 Export failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
