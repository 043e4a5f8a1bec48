from fastapi import Request

from models.settings import SrsSettings
from utils.card_store import CardStore
from utils.session import ReviewSession


def get_store(request: Request) -> CardStore:
    return request.app.state.store


def get_session(request: Request) -> ReviewSession:
    return request.app.state.session


def get_srs_settings(request: Request) -> SrsSettings:
    return request.app.state.srs_settings
