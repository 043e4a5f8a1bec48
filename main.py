import argparse
import logging
import uvicorn
from fastapi import FastAPI, Depends
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db
from config import load_config
from routes import cards, review, settings, backups  # Import routers
from routes.deps import get_session, get_store
from utils.card_store import CardStore
from utils.session import ReviewSession

logger = logging.getLogger(__name__)

# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: config, DB, card map and the single review session
    config = load_config()  # Ensures config exists
    logging.basicConfig(
        level=config["logging"]["level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    store = CardStore()
    store.load()
    app.state.config = config
    app.state.store = store
    app.state.srs_settings = store.load_settings(config["srs"])
    app.state.session = ReviewSession(store, auto_advance_delay=config["session"]["auto_advance_seconds"])
    logger.info(f"Kioku ready with {len(store)} cards")
    yield
    # Shutdown: drop any pending auto-advance timer
    app.state.session.cancel()

app = FastAPI(title="Kioku", description="Local-first typed-answer flashcards with spaced repetition", lifespan=lifespan)

# Include routers
app.include_router(cards.router, prefix="/cards", tags=["cards"])
app.include_router(review.router, prefix="/review", tags=["review"])
app.include_router(settings.router, prefix="/settings", tags=["settings"])
app.include_router(backups.router, prefix="/admin", tags=["admin"])

# Home: due/active counts and the session state
@app.get("/")
async def home(store: CardStore = Depends(get_store), session: ReviewSession = Depends(get_session)):
    return {"counts": store.counts(), "session": session.state.value}

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Kioku App")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    args = parser.parse_args()
    if args.init:
        load_config()  # Ensures config is copied if missing
        init_db()
        print("DB initialized and config copied to ~/.kioku/")
        exit(0)
    # Run server
    reload = args.dev
    uvicorn.run("main:app", host="127.0.0.1", port=args.port, reload=reload, log_level="info")
