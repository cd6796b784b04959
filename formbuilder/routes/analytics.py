"""Analytics, export and live update endpoints."""

import asyncio

from fastapi import APIRouter, Depends, Response, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from formbuilder.middleware.auth import require_credentials
from formbuilder.models.database import get_db
from formbuilder.services.form_service import FormService
from formbuilder.services.notifier import get_notifier
from formbuilder.services.token_signer import Credentials
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/forms/{form_id}/analytics")
def get_analytics(
    form_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Aggregated analytics for the caller's form.

    Example response:
        {
            "count": 2,
            "fieldBreakdown": {"color": {"buckets": {"Red": 2}}},
            "averageRating": {"score": 4.5},
            ...
        }
    """
    view = FormService(db).get_analytics(credentials, form_id)
    return view.model_dump(mode="json", by_alias=True)


@router.get("/api/forms/{form_id}/export.csv")
def export_csv(
    form_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> Response:
    """Download responses as CSV, one row per response, PII columns excluded."""
    content = FormService(db).export_csv(credentials, form_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=responses-{form_id}.csv"},
    )


async def _forward_signals(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        signal = await queue.get()
        await websocket.send_json(signal)


@router.websocket("/ws/forms/{form_id}")
async def analytics_updates(websocket: WebSocket, form_id: str) -> None:
    """Push an "analytics_changed" signal whenever a response is accepted.

    Signals carry no data; clients re-fetch the analytics endpoint. Messages
    sent by the client are ignored; reading them is how a disconnect is
    noticed.
    """
    notifier = get_notifier()
    queue = notifier.subscribe(form_id)
    forwarder = None
    try:
        await websocket.accept()
        logger.info(f"Live updates connected for form {form_id}", extra={"form_id": form_id})
        forwarder = asyncio.create_task(_forward_signals(websocket, queue))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Live updates disconnected for form {form_id}", extra={"form_id": form_id})
    finally:
        if forwarder is not None:
            forwarder.cancel()
        notifier.unsubscribe(form_id, queue)
