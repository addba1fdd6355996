import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
import stores
from db import ensure_db
from routes import games_router, players_router, admin_router, register_error_handlers

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# --- FastAPI setup ---
app = FastAPI(title="Assassin game server")

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

register_error_handlers(app)

# --- Register routes ---
app.include_router(games_router)
app.include_router(players_router)
app.include_router(admin_router)


@app.on_event("startup")
async def startup_event():
    await ensure_db(config.DB_PATH)
    await stores.open_stores(config.DB_PATH)
    logger.info(f"Game server started against {config.DB_PATH}")


@app.on_event("shutdown")
async def shutdown_event():
    await stores.close_stores()
