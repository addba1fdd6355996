"""Utility helpers used across the project.

Make commonly used helpers available at the package level for convenience.

Exports:
- time helpers: `now_utc`, `to_iso`, `parse_iso`
- validation helpers: `is_valid_name`, `VALID_NAME_RE`
"""

from .time import now_utc, to_iso, parse_iso
from .validation import is_valid_name, VALID_NAME_RE

__all__ = [
	"now_utc",
	"to_iso",
	"parse_iso",
	"is_valid_name",
	"VALID_NAME_RE",
]
