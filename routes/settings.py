import logging

from fastapi import APIRouter, Depends, Request

from models.settings import SrsSettings
from routes.deps import get_srs_settings, get_store
from utils.card_store import CardStore

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("")
async def read_settings(settings: SrsSettings = Depends(get_srs_settings)):
    return settings.model_dump(mode="json")

@router.put("")
async def update_settings(payload: SrsSettings, request: Request, store: CardStore = Depends(get_store)):
    """Persist new scheduling settings; sessions started afterwards use them."""
    store.save_settings(payload)
    request.app.state.srs_settings = payload
    logger.info(f"Saved SRS settings: streak={payload.required_streak} penalty={payload.penalty}")
    return payload.model_dump(mode="json")
