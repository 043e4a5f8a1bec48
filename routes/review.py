from fastapi import APIRouter, Depends, Form, HTTPException, Request

from models.review import SessionMode, SessionStart
from models.settings import SrsSettings
from routes.deps import get_session, get_srs_settings, get_store
from utils.card_store import CardStore
from utils.cardlist import list_questions
from utils.session import EmptySessionError, ReviewSession, SessionState, SessionStateError

router = APIRouter()

def session_error(exc: SessionStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))

@router.post("/start")
async def start_session(
    payload: SessionStart,
    request: Request,
    session: ReviewSession = Depends(get_session),
    settings: SrsSettings = Depends(get_srs_settings),
    store: CardStore = Depends(get_store),
):
    """Start a smart review (due cards) or a cram session (all active cards).

    A card list in `text` is synced into the store first: new lines become
    cards and listed cards get their answers updated.
    """
    if session.state != SessionState.IDLE:
        raise HTTPException(status_code=409, detail=f"Cannot start a session while {session.state.value}")
    questions = list(payload.questions)
    if payload.text:
        store.import_text(payload.text)
        questions.extend(list_questions(payload.text))
    shuffle = request.app.state.config["session"]["shuffle"] if payload.shuffle is None else payload.shuffle
    try:
        if payload.mode == SessionMode.CRAM:
            session.start_cram(settings, payload.scope, questions, shuffle)
        else:
            session.start_review(settings, payload.scope, questions, shuffle)
    except EmptySessionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()

@router.get("/state")
async def session_state(session: ReviewSession = Depends(get_session)):
    return session.view()

@router.post("/submit")
async def submit_answer(answer: str = Form(""), session: ReviewSession = Depends(get_session)):
    """Grade the typed answer for the card on display."""
    try:
        result = session.submit(answer)
    except SessionStateError as exc:
        raise session_error(exc)
    view = session.view()
    view["result"] = result.to_dict() if result else None
    return view

@router.post("/continue")
async def continue_session(session: ReviewSession = Depends(get_session)):
    session.advance()
    return session.view()

@router.post("/skip")
async def skip_card(session: ReviewSession = Depends(get_session)):
    try:
        session.skip()
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()

@router.post("/suspend")
async def suspend_card(session: ReviewSession = Depends(get_session)):
    try:
        session.suspend_current()
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()

@router.post("/redo")
async def practice_again(session: ReviewSession = Depends(get_session)):
    """Re-queue the last correctly answered card; its next answer does not count."""
    try:
        session.redo()
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()

@router.post("/finish")
async def finish_round(session: ReviewSession = Depends(get_session)):
    """Finish gracefully: drop cards not yet attempted and summarize when none remain."""
    try:
        session.request_finish()
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()

@router.post("/dismiss")
async def dismiss_summary(session: ReviewSession = Depends(get_session)):
    try:
        session.dismiss()
    except SessionStateError as exc:
        raise session_error(exc)
    return session.view()
