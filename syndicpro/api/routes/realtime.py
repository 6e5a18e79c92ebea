"""
Realtime change stream.

Clients connect to /realtime?token=<supabase jwt>[&year=2026]. Each connection
owns one DashboardSession: it signs in with the token's identity, loads the
selected year and seeds its missing payments, then keeps its copies current
from the change feed. The first message is a snapshot of the dashboard:

    {"eventType": "SNAPSHOT", "year": 2026, "role": "editor", "dashboard": {...}}

followed by one JSON message per committed change to apartments, payments or
expenses:

    {"eventType": "INSERT|UPDATE|DELETE", "table": "...", "new": {...}, "old": {...}}

Clients may send commands, answered in order with the stream:

    {"action": "toggle", "payment_id": 12}   -> {"eventType": "TOGGLED", "payment": {...}}
    {"action": "set_year", "year": 2025}     -> a new SNAPSHOT

A rejected command is answered with {"eventType": "ERROR", "detail": "..."}.

Closing the socket signs the session out, which drops its subscription. A
client that falls QUEUE_MAXSIZE messages behind is disconnected and has to
reconnect for a fresh snapshot.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from syndicpro.api.deps import get_db
from syndicpro.core.auth import user_from_token
from syndicpro.core.exceptions import EntityNotFoundError, PermissionDeniedError, StoreError
from syndicpro.realtime.feed import change_to_payload
from syndicpro.schemas.realtime import ClientCommand
from syndicpro.services.store import DataStore
from syndicpro.session.state import DashboardSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

QUEUE_MAXSIZE = 1000


def snapshot_payload(session: DashboardSession) -> dict:
    return {
        "eventType": "SNAPSHOT",
        "year": session.year,
        "role": session.role,
        "dashboard": session.summary(),
    }


def error_payload(detail: str) -> dict:
    return {"eventType": "ERROR", "detail": detail}


def run_command(session: DashboardSession, command: ClientCommand) -> dict:
    try:
        if command.action == "toggle":
            payment = session.toggle_payment(command.payment_id)
            return {"eventType": "TOGGLED", "payment": payment}
        session.set_year(command.year)
        return snapshot_payload(session)
    except (PermissionDeniedError, EntityNotFoundError, StoreError) as e:
        return error_payload(str(e))


@router.websocket("/realtime")
async def realtime(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
):
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        # JWKS may be fetched over HTTP on first use
        user = await run_in_threadpool(user_from_token, token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    who = user.email or user.id
    loop = asyncio.get_running_loop()
    # Feed changes, client commands and ready replies, handled strictly in order
    queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_MAXSIZE)
    sender: Optional[asyncio.Task] = None

    def enqueue(item) -> None:
        # Runs on the event loop
        try:
            queue.put_nowait(item)
        except asyncio.QueueFull:
            if sender is not None and not sender.done():
                logger.warning("Realtime client %s fell %s messages behind, disconnecting", who, QUEUE_MAXSIZE)
                sender.cancel()
                loop.create_task(websocket.close(code=status.WS_1013_TRY_AGAIN_LATER))

    store = DataStore(db, feed=websocket.app.state.change_feed)
    # Writes publish from threadpool workers; the forwarder below applies
    # changes one at a time, never on the publishing thread
    session = DashboardSession(
        store,
        feed=store.feed,
        year=year,
        reconciler=websocket.app.state.reconciler,
        dispatch=lambda change: loop.call_soon_threadsafe(enqueue, change),
    )

    async def forward():
        while True:
            item = await queue.get()
            if isinstance(item, ClientCommand):
                reply = await run_in_threadpool(run_command, session, item)
            elif isinstance(item, dict):
                reply = item
            else:
                await run_in_threadpool(session.apply_change, item)
                reply = change_to_payload(item)
            await websocket.send_json(jsonable_encoder(reply))

    try:
        await run_in_threadpool(session.on_auth_state_changed, user)
        logger.info("Realtime session opened for %s (%s, %s)", who, session.role, session.year)
        await websocket.send_json(jsonable_encoder(snapshot_payload(session)))

        sender = asyncio.create_task(forward())
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                continue
            try:
                enqueue(ClientCommand.model_validate_json(text))
            except ValidationError:
                enqueue(error_payload("Invalid command"))
    finally:
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Realtime forwarder for %s failed", who)
        session.close()
        logger.info("Realtime session closed for %s", who)
