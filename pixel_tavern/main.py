"""
FastAPI main application: REST API, WebSocket chat and the built client.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
import time

from fastapi import Body, FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from sqlmodel import select

from pixel_tavern.config import get_settings
from pixel_tavern.deps import DBSession, SettingsDep
from pixel_tavern.db.models import Bartender, BartenderMood
from pixel_tavern.db.sqlite import init_db, check_db_health
from pixel_tavern.errors import NotFoundError, TavernError
from pixel_tavern.mcp import mcp
from pixel_tavern.protocol import WebSocketMessageType
from pixel_tavern.routes import auth, inventory as inventory_routes
from pixel_tavern.schemas import (
    BartenderOut,
    ErrorResponse,
    HealthStatus,
    MemoryEntry,
    MenuItemOut,
    MessageOut,
    MoodOut,
    RoomIn,
    RoomOut,
    UserOut,
)
from pixel_tavern.services import accounts, bartenders, rooms
from pixel_tavern.services.chat import hub, inventory_payload
from pixel_tavern.services.sentiment import get_mood_description, get_mood_icon
from pixel_tavern.tasks.jobs import run_startup_jobs


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    # Startup
    print("🚀 Starting Pixel Tavern...")

    try:
        init_db()
        run_startup_jobs()
    except Exception as e:
        print(f"⚠️  Database init warning: {e}")

    if get_settings().ai_available:
        print("✓ OpenRouter dialogue enabled")
    else:
        print("⚠️  OpenRouter dialogue disabled (OPENROUTER_API_KEY not set), using canned lines")

    yield

    # Shutdown
    print("👋 Shutting down...")
    await hub.shutdown()


settings = get_settings()

app = FastAPI(
    title="Pixel Tavern",
    version="0.1.0",
    description="Fantasy tavern chat with bartender NPCs",
    lifespan=lifespan,
    debug=settings.DEBUG,
)


# === Middleware ===

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


MAX_LOG_LINE = 80


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    """One console line per /api request."""
    start = time.perf_counter()
    response = await call_next(request)

    if request.url.path.startswith("/api"):
        duration_ms = int((time.perf_counter() - start) * 1000)
        line = f"{request.method} {request.url.path} {response.status_code} in {duration_ms}ms"
        if len(line) > MAX_LOG_LINE:
            line = line[:MAX_LOG_LINE - 1] + "…"
        print(line)

    return response


@app.exception_handler(TavernError)
async def tavern_exception_handler(request: Request, exc: TavernError):
    """Expected service failures (not found, conflict, bad action...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, code=exc.code).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    print(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if app.debug else "An unexpected error occurred",
        }
    )


# === Health Check ===

@app.get("/health", response_model=HealthStatus)
async def health_check(settings: SettingsDep):
    """
    Health check.

    Checks:
    - Database connectivity and row counts
    - OpenRouter configuration (without it bartenders use canned lines)
    """
    db_health = check_db_health()

    ai_status = {
        "configured": settings.ai_available,
        "model": settings.OPENROUTER_MODEL,
    }

    overall_status = "ok"
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"
    elif not settings.ai_available:
        overall_status = "degraded"

    return HealthStatus(
        status=overall_status,
        service="pixel-tavern",
        timestamp=datetime.now(timezone.utc),
        database=db_health,
        ai=ai_status,
        connections=hub.manager.connection_count,
    )


# === Room Endpoints ===

@app.get("/api/rooms")
async def list_rooms():
    return [RoomOut.model_validate(r).to_wire() for r in rooms.get_rooms()]


@app.post("/api/rooms", status_code=201)
async def create_room(request: RoomIn):
    """Create a room. 409 if the name is taken."""
    if request.bartender_id is not None and bartenders.get_bartender(request.bartender_id) is None:
        raise NotFoundError("Bartender not found")

    room = rooms.create_room(request.name, request.description, request.bartender_id)
    return RoomOut.model_validate(room).to_wire()


@app.get("/api/rooms/{room_id}/messages")
async def list_room_messages(
    room_id: int,
    limit: int = Query(50, ge=1, le=200),
):
    """Most recent messages of a room, oldest first."""
    if rooms.get_room(room_id) is None:
        raise NotFoundError("Room not found")

    return [MessageOut.model_validate(m).to_wire() for m in rooms.get_messages_by_room(room_id, limit)]


# === Bartender Endpoints ===

@app.get("/api/bartenders")
async def list_bartenders():
    return [BartenderOut.model_validate(b).to_wire() for b in bartenders.get_bartenders()]


@app.get("/api/menu")
async def list_menu(category: Optional[str] = Query(None)):
    return [MenuItemOut.model_validate(m).to_wire() for m in bartenders.get_menu_items(category)]


@app.get("/api/users/{user_id}/moods")
async def list_moods(user_id: int, db: DBSession):
    """Every bartender's mood toward a user, with its description band."""
    accounts.require_user(user_id)

    statement = (
        select(BartenderMood, Bartender)
        .join(Bartender, Bartender.id == BartenderMood.bartender_id)
        .where(BartenderMood.user_id == user_id)
        .order_by(Bartender.id)
    )

    return [
        MoodOut(
            user_id=mood.user_id,
            bartender_id=mood.bartender_id,
            bartender_name=bartender.name,
            mood=mood.mood,
            description=get_mood_description(mood.mood),
            icon=get_mood_icon(mood.mood),
            updated_at=mood.updated_at,
        ).to_wire()
        for mood, bartender in db.exec(statement).all()
    ]


@app.get("/api/users/{user_id}/bartenders/{bartender_id}/memories")
async def list_memories(
    user_id: int,
    bartender_id: int,
    limit: int = Query(10, ge=1, le=50),
):
    """What a bartender remembers about a user, newest first."""
    accounts.require_user(user_id)
    if bartenders.get_bartender(bartender_id) is None:
        raise NotFoundError("Bartender not found")

    entries = bartenders.get_memory_entries(user_id, bartender_id, limit)
    return {"memories": [MemoryEntry.model_validate(e).to_wire() for e in entries]}


# === Action Endpoints ===

@app.post("/api/users/{user_id}/actions/{action}")
async def run_user_action(
    user_id: int,
    action: str,
    data: Optional[dict[str, Any]] = Body(default=None),
):
    user = await mcp.handle_user_action(user_id, action, data)
    await hub.send_to_user(
        user_id,
        WebSocketMessageType.CURRENCY_UPDATE,
        {"currency": {"silver": user.silver, "gold": user.gold}},
    )
    return {"user": UserOut.model_validate(user).to_wire()}


@app.post("/api/users/{user_id}/bartenders/{bartender_id}/actions/{action}")
async def run_bartender_action(
    user_id: int,
    bartender_id: int,
    action: str,
    data: Optional[dict[str, Any]] = Body(default=None),
):
    bartender = await mcp.handle_bartender_action(user_id, bartender_id, action, data)
    return {"bartender": BartenderOut.model_validate(bartender).to_wire()}


@app.post("/api/users/{user_id}/inventory/actions/{action}")
async def run_inventory_action(
    user_id: int,
    action: str,
    data: Optional[dict[str, Any]] = Body(default=None),
):
    entries = await mcp.handle_inventory_action(user_id, action, data)
    await hub.send_to_user(user_id, WebSocketMessageType.INVENTORY_UPDATE, inventory_payload(user_id))
    return {"inventory": [e.to_wire() for e in entries]}


app.include_router(auth.router)
app.include_router(inventory_routes.router)


# === WebSocket ===

@app.websocket("/ws")
async def tavern_socket(websocket: WebSocket):
    await hub.serve(websocket)


# === Client ===

def mount_client(app: FastAPI, dist_dir: str) -> bool:
    """
    Serve the built browser client, falling back to index.html for
    client-side routes. Registered last so API routes win.
    """
    dist = Path(dist_dir).resolve()
    index = dist / "index.html"
    if not index.is_file():
        print(f"⚠️  Client build not found at {dist}, serving API only")
        return False

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_client(full_path: str):
        if full_path.startswith("api/"):
            raise NotFoundError("Not found")

        candidate = (dist / full_path).resolve()
        if full_path and candidate.is_file() and dist in candidate.parents:
            return FileResponse(candidate)
        return FileResponse(index)

    return True


mount_client(app, settings.CLIENT_DIST_DIR)
