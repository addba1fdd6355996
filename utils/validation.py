"""Validation helpers used by route handlers."""
import regex as re


# Allow: any Unicode letter/mark/number, spaces, plus a small, explicit set of name punctuation
VALID_NAME_RE = re.compile(r"^[\p{L}\p{M}\p{N} .'\-`’·]+$", flags=re.UNICODE)

RESERVED_NAMES = {"admin", "system"}


def is_valid_name(s: str) -> bool:
	"""Return True if `s` is a reasonable player or class name.

	- Strips and enforces a sensible maximum length.
	- Uses Unicode-aware character class matching.
	"""
	if not s or s.isspace():
		return False
	s = s.strip()
	if len(s) > 200 or s.casefold() in RESERVED_NAMES:
		return False
	return bool(VALID_NAME_RE.match(s))
