from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ...api import (
    AdminUserRequest,
    CancelRequestBody,
    CredentialsRequest,
    EventDraftRequest,
    serialize_event,
    serialize_events,
    serialize_feed,
    serialize_user,
)
from ...core.roster import EventNotFoundError, InvalidEventError, RosterError
from ..context import ServiceContext
from ..events import EventService
from ..users import InvalidUserError, PermissionDeniedError, UnknownUserError, UserError, UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _context(request: Request) -> ServiceContext:
    return request.app.state.context


def _events(request: Request) -> EventService:
    return EventService(_context(request))


def _users(request: Request) -> UserService:
    return UserService(_context(request))


def _status_for(exc: Exception) -> int:
    if isinstance(exc, (UnknownUserError, EventNotFoundError)):
        return 404
    if isinstance(exc, PermissionDeniedError):
        return 403
    if isinstance(exc, (InvalidEventError, InvalidUserError)):
        return 422
    return 409


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = _status_for(exc)
    logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    context = _context(request)
    return {
        "users": context.users.state.value,
        "events": context.events.state.value,
        "recurrence": context.recurrence.running,
    }


@router.get("/feed")
async def feed(request: Request) -> Dict[str, Any]:
    return {"categories": serialize_feed(_events(request).feed())}


@router.get("/events")
async def list_events(request: Request) -> Dict[str, Any]:
    return {"events": serialize_events(_events(request).upcoming())}


@router.get("/users")
async def list_users(request: Request) -> Dict[str, Any]:
    return {"users": [serialize_user(user) for user in _users(request).list_users()]}


@router.post("/session")
async def log_in(request: Request, body: CredentialsRequest) -> Dict[str, Any]:
    user = _users(request).log_in(body.name, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Name or password is incorrect")
    return {"user": serialize_user(user)}


@router.post("/users", status_code=201)
async def sign_up(request: Request, body: CredentialsRequest) -> Dict[str, Any]:
    user = await _users(request).sign_up(body.name, body.password)
    return {"user": serialize_user(user)}


@router.post("/admin/users", status_code=201)
async def admin_create_user(
    request: Request,
    body: AdminUserRequest,
    x_user_id: int = Header(),
) -> Dict[str, Any]:
    user = await _users(request).admin_create_user(
        body.name, body.password, is_admin=body.is_admin, admin_id=x_user_id
    )
    return {"user": serialize_user(user)}


@router.post("/events", status_code=201)
async def create_event(request: Request, body: EventDraftRequest, x_user_id: int = Header()) -> Dict[str, Any]:
    event = await _events(request).create_event(body.to_draft(), admin_id=x_user_id)
    return {"event": serialize_event(event)}


@router.put("/events/{event_id}")
async def update_event(
    request: Request,
    event_id: int,
    body: EventDraftRequest,
    x_user_id: int = Header(),
) -> Dict[str, Any]:
    event = _events(request).update_event(event_id, body.to_draft(), admin_id=x_user_id)
    return {"event": serialize_event(event)}


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(request: Request, event_id: int, x_user_id: int = Header()) -> Response:
    await _events(request).delete_event(event_id, admin_id=x_user_id)
    return Response(status_code=204)


@router.post("/events/{event_id}/join")
async def join_event(request: Request, event_id: int, x_user_id: int = Header()) -> Dict[str, Any]:
    return {"event": serialize_event(_events(request).join(event_id, x_user_id))}


@router.post("/events/{event_id}/apply")
async def apply_for_slot(request: Request, event_id: int, x_user_id: int = Header()) -> Dict[str, Any]:
    return {"event": serialize_event(_events(request).apply_for_slot(event_id, x_user_id))}


@router.post("/events/{event_id}/cancel-requests")
async def request_cancel(
    request: Request,
    event_id: int,
    body: CancelRequestBody,
    x_user_id: int = Header(),
) -> Dict[str, Any]:
    event = _events(request).request_cancel(event_id, x_user_id, body.reason)
    return {"event": serialize_event(event)}


@router.post("/events/{event_id}/cancel-requests/{user_id}/approve")
async def approve_cancel(request: Request, event_id: int, user_id: int, x_user_id: int = Header()) -> Dict[str, Any]:
    event = _events(request).approve_cancel(event_id, user_id, admin_id=x_user_id)
    return {"event": serialize_event(event)}


@router.delete("/events/{event_id}/participants/{user_id}")
async def remove_participant(
    request: Request,
    event_id: int,
    user_id: int,
    x_user_id: int = Header(),
) -> Dict[str, Any]:
    event = _events(request).remove_participant(event_id, user_id, admin_id=x_user_id)
    return {"event": serialize_event(event)}


@router.post("/events/{event_id}/notify")
async def notify_all(request: Request, event_id: int, x_user_id: int = Header()) -> Dict[str, Any]:
    return {"event": serialize_event(_events(request).notify_all(event_id, admin_id=x_user_id))}


def create_app(context: ServiceContext, *, run_recurrence: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await context.start(run_recurrence=run_recurrence)
        try:
            yield
        finally:
            await context.close()

    app = FastAPI(title="meetsync API", version="0.1.0", lifespan=lifespan)
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RosterError, _domain_error_handler)
    app.add_exception_handler(UserError, _domain_error_handler)
    app.include_router(router)
    return app


def run_local_server(context: ServiceContext, host: str = "127.0.0.1", port: int = 8000) -> None:
    from hypercorn.asyncio import serve
    from hypercorn.config import Config

    config = Config()
    config.bind = [f"{host}:{port}"]
    logger.info("Serving meetsync API on %s:%d", host, port)
    asyncio.run(serve(create_app(context), config))
