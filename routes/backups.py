import io
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from db.database import SnapshotError, export_snapshot_bytes, import_snapshot_bytes
from routes.deps import get_session, get_store
from utils.card_store import CardStore
from utils.session import ReviewSession, SessionState

router = APIRouter()

@router.get("/snapshot")
async def download_snapshot():
    """Download the raw SQLite database."""
    try:
        data = export_snapshot_bytes()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    filename = f"kioku_backup_{timestamp}.db"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(io.BytesIO(data), media_type="application/x-sqlite3", headers=headers)

@router.post("/snapshot")
async def restore_snapshot(
    request: Request,
    file: UploadFile = File(...),
    store: CardStore = Depends(get_store),
    session: ReviewSession = Depends(get_session),
):
    """Replace the database with an uploaded snapshot and reload the card map."""
    if session.state != SessionState.IDLE:
        raise HTTPException(status_code=409, detail="Finish the current session before importing a snapshot")
    if not file.filename:
        raise HTTPException(status_code=400, detail="Snapshot file is required")
    data = await file.read()
    try:
        import_snapshot_bytes(data)
    except SnapshotError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    store.load()
    request.app.state.srs_settings = store.load_settings(request.app.state.config["srs"])
    return {"imported": True, "cards": len(store)}
