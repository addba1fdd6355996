import os
from pathlib import Path

import bcrypt

# Path to the SQLite database file used by stores. Can be overridden
# using the ASSASSIN_DB_PATH environment variable.
DB_PATH = os.environ.get("ASSASSIN_DB_PATH", str(Path(__file__).parent / "db.sqlite3"))

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/2")
ANNOUNCEMENT_CHANNEL = os.environ.get("ANNOUNCEMENT_CHANNEL", "announcements")

# Admin routes are gated by a bcrypt hash. Set ADMIN_PASSWORD_HASH in
# production; the plaintext fallback is for local development only.
ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH", "").encode() or bcrypt.hashpw(
    os.environ.get("ADMIN_PASSWORD", "changeme").encode(),
    bcrypt.gensalt(rounds=int(os.environ.get("ADMIN_BCRYPT_ROUNDS", "12"))),
)

BOUNTY_DURATION_SECONDS = int(os.environ.get("BOUNTY_DURATION_SECONDS", str(30 * 60)))

# Number of snapshot/decide/commit attempts before a version conflict is surfaced.
COMMIT_ATTEMPTS = int(os.environ.get("COMMIT_ATTEMPTS", "3"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
