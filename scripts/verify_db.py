#!/usr/bin/env python3
"""Check that the assassin game database has its tables and singleton rows."""
import os
import sqlite3
import sys

db_path = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("ASSASSIN_DB_PATH", "./assassin.db")

try:
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = cursor.fetchall()

    print(f"[VERIFY] Database at {db_path}")
    print(f"[VERIFY] Found {len(tables)} tables:")
    for table in tables:
        print(f"[VERIFY]   - {table[0]}")

    critical_tables = {'players', 'game_state', 'bounty', 'proofs', 'announcements'}
    found_tables = {t[0] for t in tables}

    missing = critical_tables - found_tables
    if missing:
        print(f"[VERIFY] ✗ CRITICAL: Missing tables: {missing}")
        sys.exit(1)

    for singleton in ('game_state', 'bounty'):
        cursor.execute(f"SELECT COUNT(*) FROM {singleton} WHERE id = 1")
        if cursor.fetchone()[0] != 1:
            print(f"[VERIFY] ✗ CRITICAL: {singleton} row is missing")
            sys.exit(1)

    cursor.execute("SELECT started, purge_mode, version FROM game_state WHERE id = 1")
    started, purge_mode, version = cursor.fetchone()
    print(f"[VERIFY] game_state: started={bool(started)} purge_mode={bool(purge_mode)} version={version}")
    print(f"[VERIFY] ✓ All critical tables present")
    sys.exit(0)

except sqlite3.Error as e:
    print(f"[VERIFY] ✗ Error verifying database: {e}")
    sys.exit(1)
