"""Map store and game-rule exceptions to JSON error responses.

Body shape: {"error": {"code": <exception class name>, "message": <str>}}
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from stores import (
	StoreError,
	GameRuleError,
	PlayerNotFound,
	ProofNotFound,
	VictimNotFound,
	VictimAlreadyEliminated,
	InvalidProofState,
	GameAlreadyStarted,
	VersionConflict,
	PlayerAlreadyExists,
	InvalidColumns,
)

logger = logging.getLogger(__name__)


class AdminAuthError(Exception):
	"""Missing or wrong admin password."""


# First match wins; subclasses before their bases.
STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
	(PlayerNotFound, 404),
	(ProofNotFound, 404),
	(VictimNotFound, 404),
	(VictimAlreadyEliminated, 409),
	(InvalidProofState, 409),
	(GameAlreadyStarted, 409),
	(VersionConflict, 409),
	(PlayerAlreadyExists, 409),
	(InvalidColumns, 400),
	(GameRuleError, 400),
)


def status_for(exc: Exception) -> int:
	for error_type, status in STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			return status
	return 500


def error_response(status: int, code: str, message: str) -> JSONResponse:
	return JSONResponse(status_code=status, content={"error": {"code": code, "message": message}})


def register_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StoreError)
	async def store_error_handler(request: Request, exc: StoreError):
		status = status_for(exc)
		if status >= 500:
			logger.error(f"{request.method} {request.url.path} failed: {exc.__class__.__name__}: {exc}", exc_info=exc)
			return error_response(status, exc.__class__.__name__, "Internal error; please retry")
		logger.info(f"{request.method} {request.url.path} rejected ({status}): {exc.__class__.__name__}: {exc}")
		return error_response(status, exc.__class__.__name__, str(exc))

	@app.exception_handler(AdminAuthError)
	async def admin_auth_error_handler(request: Request, exc: AdminAuthError):
		logger.warning(f"Rejected admin request to {request.url.path}")
		return error_response(401, "AdminAuthError", str(exc) or "Admin password required")
