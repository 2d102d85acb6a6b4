"""FastAPI application exposing the signaling relay over HTTP and WebSocket."""

from __future__ import annotations

import asyncio
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.websockets import WebSocketState

from . import config
from .channel import WebSocketChannel
from .directory import IdentityDirectory, UserRecord
from .errors import AuthenticationError, ConfigurationError, RelayError
from .lifecycle import ConnectionLifecycle
from .locks import StripedLock
from .messages import MessageKind, SignalingMessage
from .pending import PendingQueue
from .relay import RelayEngine
from .sessions import SessionRegistry

log = logging.getLogger("signal_relay.api")

# ------------------------------------------------------------------------------
# Relay state (single instance, in memory)
# ------------------------------------------------------------------------------
DIRECTORY = IdentityDirectory()
SESSIONS = SessionRegistry()
PENDING = PendingQueue(max_per_identity=config.PENDING_MAX_PER_IDENTITY, ttl_s=config.PENDING_TTL_S)
LOCKS = StripedLock()
RELAY = RelayEngine(SESSIONS, PENDING, LOCKS)
LIFECYCLE = ConnectionLifecycle(SESSIONS, PENDING, DIRECTORY, LOCKS)


# ------------------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    userId: Optional[str] = None
    email: Optional[str] = None
    displayName: Optional[str] = None
    preKeyBundle: Any = None
    profileImage: Optional[str] = None


class RegisterResponse(BaseModel):
    success: bool
    userId: str


class UserResponse(BaseModel):
    userId: str
    email: str
    displayName: str
    preKeyBundle: Any
    profileImage: Optional[str] = None
    lastSeen: int


class SignalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None


class OfferRequest(SignalRequest):
    offer: Any = None


class AnswerRequest(SignalRequest):
    answer: Any = None


class IceRequest(SignalRequest):
    candidate: Any = None


class AckResponse(BaseModel):
    success: bool = True


class PresenceResponse(BaseModel):
    online: bool
    lastSeen: Optional[int] = None


class StatsResponse(BaseModel):
    online: int
    pendingIdentities: int
    pendingMessages: int
    users: int


# ------------------------------------------------------------------------------
# Maintenance
# ------------------------------------------------------------------------------
def prune_expired() -> None:
    """Expire queued messages and stale user records when TTLs are configured."""

    PENDING.prune()
    DIRECTORY.reap(config.USER_TTL_S, SESSIONS.is_online)


def reset_state() -> None:
    """Reset the in-memory state. Intended for tests."""

    for channel in SESSIONS.clear():
        channel.close()
    PENDING.clear()
    DIRECTORY.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    async def _prune():
        while True:
            await asyncio.sleep(config.PRUNE_INTERVAL_S)
            try:
                prune_expired()
            except Exception:
                log.exception("prune pass failed")

    prune_task = asyncio.create_task(_prune())

    yield

    prune_task.cancel()


app = FastAPI(title="Signaling Relay", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "Missing required fields"}, status_code=400)


def require_api_key(x_api_key: Optional[str] = Header(default=None, alias=config.API_KEY_HEADER)) -> None:
    """Check the shared secret header against the configured API key."""

    expected = config.api_key()
    if not expected:
        raise ConfigurationError("Server configuration error: API_KEY not set")
    if not x_api_key or not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationError("Unauthorized")


# ------------------------------------------------------------------------------
# Directory endpoints
# ------------------------------------------------------------------------------
def _format_user(record: UserRecord) -> UserResponse:
    return UserResponse(**record.as_dict())


@app.post("/register", response_model=RegisterResponse, dependencies=[Depends(require_api_key)])
async def register_user(payload: RegisterRequest) -> RegisterResponse:
    """Store (or overwrite) a user's profile and pre-key bundle."""

    record = DIRECTORY.register(
        payload.userId,
        payload.email,
        payload.displayName,
        payload.preKeyBundle,
        profile_image=payload.profileImage,
    )
    return RegisterResponse(success=True, userId=record.user_id)


@app.get("/lookup/{user_id}", response_model=UserResponse, dependencies=[Depends(require_api_key)])
async def lookup_user(user_id: str) -> UserResponse:
    return _format_user(DIRECTORY.lookup(user_id))


# ------------------------------------------------------------------------------
# Signaling endpoints
# ------------------------------------------------------------------------------
def _relay(kind: MessageKind, payload: SignalRequest, body: Any) -> AckResponse:
    message = SignalingMessage.create(kind, payload.sender, payload.to, body)
    RELAY.route(message)
    return AckResponse()


@app.post("/offer", response_model=AckResponse, dependencies=[Depends(require_api_key)])
async def send_offer(payload: OfferRequest) -> AckResponse:
    return _relay(MessageKind.OFFER, payload, payload.offer)


@app.post("/answer", response_model=AckResponse, dependencies=[Depends(require_api_key)])
async def send_answer(payload: AnswerRequest) -> AckResponse:
    return _relay(MessageKind.ANSWER, payload, payload.answer)


@app.post("/ice", response_model=AckResponse, dependencies=[Depends(require_api_key)])
async def send_ice(payload: IceRequest) -> AckResponse:
    """Relay an ICE candidate; it is dropped if the peer is not connected."""

    return _relay(MessageKind.ICE, payload, payload.candidate)


# ------------------------------------------------------------------------------
# Presence and monitoring
# ------------------------------------------------------------------------------
@app.get("/presence/{user_id}", response_model=PresenceResponse)
async def get_presence(user_id: str) -> PresenceResponse:
    record = DIRECTORY.get(user_id)
    return PresenceResponse(
        online=SESSIONS.is_online(user_id),
        lastSeen=record.last_seen if record else None,
    )


@app.get("/stats", response_model=StatsResponse, dependencies=[Depends(require_api_key)])
async def relay_stats() -> StatsResponse:
    return StatsResponse(
        online=len(SESSIONS),
        pendingIdentities=len(PENDING.identities()),
        pendingMessages=PENDING.size(),
        users=len(DIRECTORY),
    )


# ------------------------------------------------------------------------------
# WebSocket endpoint: /ws?userId=...
# ------------------------------------------------------------------------------
@app.get("/ws")
async def ws_upgrade_required() -> PlainTextResponse:
    return PlainTextResponse("Expected websocket", status_code=status.HTTP_426_UPGRADE_REQUIRED)


@app.websocket("/ws")
async def ws_connect(ws: WebSocket, user_id: Optional[str] = Query(default=None, alias="userId")):
    if not user_id:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await ws.accept()
    channel = WebSocketChannel(ws, user_id)
    LIFECYCLE.open(user_id, channel)
    pump_task = asyncio.create_task(channel.pump())
    ended = False

    try:
        while True:
            # Inbound frames carry nothing for the relay; read only to observe close.
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    except WebSocketDisconnect:
        ended = True
        LIFECYCLE.close(user_id, channel)
    except Exception:
        ended = True
        log.exception("websocket for %s failed", user_id)
        LIFECYCLE.error(user_id, channel)
    finally:
        if not ended:
            # cancelled, e.g. at shutdown
            LIFECYCLE.error(user_id, channel)
        pump_task.cancel()
        await asyncio.gather(pump_task, return_exceptions=True)
        if (
            ws.client_state == WebSocketState.CONNECTED
            and ws.application_state == WebSocketState.CONNECTED
        ):
            await ws.close()


def main():
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL,
        loop="uvloop" if config.UVLOOP else "auto",
    )


__all__ = ["app", "reset_state", "main"]


if __name__ == "__main__":
    main()
