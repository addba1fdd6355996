"""HTTP route modules (FastAPI routers) for the application.

This file explicitly exports the router objects provided by each
submodule so callers can do:

	from routes import games_router
	app.include_router(games_router)

Submodules expose an `APIRouter` named `router` carrying its own prefix.
"""

from .games import router as games_router
from .players import router as players_router
from .admin import router as admin_router
from .errors import register_error_handlers

__all__ = [
	"games_router",
	"players_router",
	"admin_router",
	"register_error_handlers",
]
