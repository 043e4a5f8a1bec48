from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import PlainTextResponse

from models.card import CardCreate, CardFlag, CardRef, CardRename, CardStatus
from models.review import ReviewScope
from routes.deps import get_session, get_store
from utils.card_store import CardConflictError, CardStore
from utils.session import ReviewSession

router = APIRouter()

def with_question_first(question: str, answers: list) -> list:
    """Answers as stored: the question in slot 0 followed by the alternates."""
    alternates = [a.strip() for a in answers if a and a.strip()]
    if alternates and alternates[0] == question:
        return alternates
    return [question, *alternates]

@router.get("")
async def list_cards(status: CardStatus = CardStatus.ACTIVE, store: CardStore = Depends(get_store)):
    """List cards filtered by status (active, suspended or starred)."""
    return [card.model_dump(mode="json") for card in store.by_status(status)]

@router.post("")
async def upsert_card(payload: CardCreate, store: CardStore = Depends(get_store)):
    """Add a card, or replace the answers of an existing one."""
    answers = with_question_first(payload.question, payload.answers)
    if len(answers) < 2:
        raise HTTPException(status_code=400, detail="Provide at least one answer")
    card = store.upsert(payload.question, answers)
    return card.model_dump(mode="json")

@router.get("/lookup")
async def get_card(question: str, store: CardStore = Depends(get_store)):
    card = store.get(question)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card.model_dump(mode="json")

@router.get("/counts")
async def card_counts(scope: ReviewScope = ReviewScope.ALL, questions: Optional[str] = None, store: CardStore = Depends(get_store)):
    """Due and active counts for a review scope; `questions` is newline-separated for the list scope."""
    question_list = [q.strip() for q in (questions or "").splitlines() if q.strip()]
    return store.counts(scope, question_list)

@router.post("/rename")
async def rename_card(
    payload: CardRename,
    store: CardStore = Depends(get_store),
    session: ReviewSession = Depends(get_session),
):
    new_question = payload.new_question.strip()
    if not new_question:
        raise HTTPException(status_code=400, detail="Question and answers must not be empty")
    answers = with_question_first(new_question, payload.answers)
    if len(answers) < 2:
        raise HTTPException(status_code=400, detail="Question and answers must not be empty")
    try:
        card = store.rename(payload.old_question, new_question, answers)
    except CardConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    session.rename_card(payload.old_question, new_question, answers)
    return card.model_dump(mode="json")

@router.post("/suspend")
async def suspend_card(payload: CardFlag, store: CardStore = Depends(get_store)):
    """Suspend a card, or restore it to the due pile with suspended=false."""
    suspended = True if payload.suspended is None else payload.suspended
    card = store.set_suspended(payload.question, suspended)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card.model_dump(mode="json")

@router.post("/star")
async def star_card(payload: CardRef, store: CardStore = Depends(get_store)):
    card = store.toggle_starred(payload.question)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card.model_dump(mode="json")

@router.post("/delete")
async def delete_card(payload: CardRef, store: CardStore = Depends(get_store)):
    card = store.delete(payload.question)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return {"deleted": card.question}

@router.get("/history")
async def card_history(question: Optional[str] = None, limit: int = 100, store: CardStore = Depends(get_store)):
    """Review history, newest first, for one card or all cards."""
    return [entry.model_dump(mode="json") for entry in store.history(question, limit)]

@router.post("/import")
async def import_cards(
    text: Optional[str] = Form(None, description="Card list, one 'question | answer | ...' per line"),
    file: Optional[UploadFile] = File(None, description="TXT file with the same format"),
    context: CardStatus = Form(CardStatus.ACTIVE, description="Status given to imported cards"),
    store: CardStore = Depends(get_store),
):
    """Import cards from pasted text or an uploaded .txt file."""
    if file and file.filename:
        if not file.filename.endswith('.txt'):
            raise HTTPException(status_code=400, detail="File must be .txt")
        content = await file.read()
        text = content.decode('utf-8', errors='ignore')
    if not text or not text.strip():
        raise HTTPException(status_code=400, detail="Provide card text or a .txt file")
    added = store.import_text(text, context)
    return {"added": added, "total": len(store)}

@router.get("/export", response_class=PlainTextResponse)
async def export_cards(status: CardStatus = CardStatus.ACTIVE, store: CardStore = Depends(get_store)):
    data = store.export_text(status)
    if not data:
        raise HTTPException(status_code=404, detail="No cards to export for the selected status")
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    filename = f"kioku_{status.value}_{timestamp}.txt"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return PlainTextResponse(data, headers=headers)
