#!/usr/bin/env python3
"""Create (or recreate) the assassin game database from db/schema.sql."""
import sqlite3
import sys
import os
from pathlib import Path

CRITICAL_TABLES = ("players", "game_state", "bounty", "proofs", "announcements")


def init_db(db_path: str, schema_path: str, *, fresh: bool = False) -> None:
    """Apply the schema file to `db_path`.

    With `fresh`, every existing table and trigger is dropped first, wiping
    all players and game history.
    """
    db_path = Path(db_path).resolve()
    schema_path = Path(schema_path).resolve()

    if not schema_path.exists():
        print(f"[INIT] ✗ Error: Schema file not found at {schema_path}", file=sys.stderr)
        sys.exit(1)

    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
        cursor = conn.cursor()

        if fresh:
            cursor.execute("PRAGMA foreign_keys = OFF")
            cursor.execute("SELECT type, name FROM sqlite_master WHERE type IN ('table', 'trigger') AND name NOT LIKE 'sqlite_%'")
            for kind, name in cursor.fetchall():
                cursor.execute(f"DROP {kind.upper()} IF EXISTS {name}")
            conn.commit()

        conn.executescript(schema_path.read_text())
        conn.commit()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        created_tables = {t[0] for t in cursor.fetchall()}
        missing = [table for table in CRITICAL_TABLES if table not in created_tables]
        conn.close()
        if missing:
            print(f"[INIT] ✗ Error: Missing critical tables {missing}", file=sys.stderr)
            sys.exit(1)

        # Workers and the API server may run as different users in containers
        os.chmod(str(db_path), 0o666)
        print(f"[INIT] ✓ Database initialized at {db_path}")

    except sqlite3.Error as e:
        print(f"[INIT] ✗ Error: Failed to initialize database: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--fresh"]
    default_db = os.environ.get("ASSASSIN_DB_PATH", "./assassin.db")
    db_path = args[0] if len(args) > 0 else default_db
    schema_path = args[1] if len(args) > 1 else str(Path(__file__).parent.parent / "db" / "schema.sql")
    init_db(db_path, schema_path, fresh="--fresh" in sys.argv)
