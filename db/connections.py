from pathlib import Path
from typing import Dict, Optional
import aiosqlite

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def connect(db_path: str, pragmas: Optional[Dict[str, str]] = None) -> aiosqlite.Connection:
    """Open an aiosqlite connection for the game database.

    - `row_factory` is `aiosqlite.Row` for named access.
    - Implicit transactions are disabled (`isolation_level=None`); writers
      open their own `BEGIN IMMEDIATE`.
    - Foreign keys are enabled; any extra PRAGMA settings in `pragmas` are applied.

    Returns an open connection; caller is responsible for closing it.
    """
    conn = await aiosqlite.connect(db_path, timeout=30.0, isolation_level=None)
    conn.row_factory = aiosqlite.Row

    await conn.execute("PRAGMA foreign_keys = ON")
    if pragmas:
        for k, v in pragmas.items():
            await conn.execute(f"PRAGMA {k} = {v}")
    return conn


async def init_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Create every table, index and trigger from `schema.sql`.

    The schema only uses `IF NOT EXISTS` / `OR IGNORE` statements, so running
    this against an existing database is harmless.
    """
    schema_file = Path(schema_path) if schema_path else SCHEMA_PATH
    if not schema_file.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_file}")

    conn = await connect(db_path)
    try:
        # executescript keeps trigger bodies (which contain ';') intact
        await conn.executescript(schema_file.read_text())
    finally:
        await conn.close()


async def ensure_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Create the database file and schema if the file does not exist yet."""
    db_file = Path(db_path)
    if db_file.exists():
        return
    if db_file.parent and not db_file.parent.exists():
        db_file.parent.mkdir(parents=True, exist_ok=True)

    await init_db(db_path, schema_path)
