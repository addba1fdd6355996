"""Time utilities: timezone-aware helpers and ISO formatting/parsing.

Every timestamp the game stores is timezone-aware UTC, written as ISO-8601 text.
"""
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
	"""Return current UTC datetime with tzinfo set."""
	return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
	"""Serialize a datetime to ISO8601 string. Naive values are taken as UTC."""
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt.isoformat()


def parse_iso(s: str) -> Optional[datetime]:
	"""Parse an ISO8601 string into a timezone-aware datetime.

	Returns None for empty or malformed input.
	"""
	if not s:
		return None
	# tolerate trailing Z
	if s.endswith("Z"):
		s = s[:-1] + "+00:00"
	try:
		dt = datetime.fromisoformat(s)
	except ValueError:
		return None
	return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
