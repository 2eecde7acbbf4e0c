from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from natureid.config import Settings
from natureid.orchestrator.contracts import HistoryEntry, IdentifyResponse
from natureid.orchestrator.errors import ERR_INVALID_INPUT, ERR_TOO_LARGE, InvalidInputError, NatureIdError, NotFoundError
from natureid.orchestrator.pipeline import IdentifyPipeline
from natureid.services.history_store import HistoryStore
from natureid.services.models import (
    IdentifyRequest, MessageResponse, DeleteEntryResponse, StatusResponse,
)
from natureid.services.status_store import StatusStore

load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

router = APIRouter()


def build_vision(settings: Settings, status: StatusStore):
    # VISION_ADAPTER: openrouter | mock  (default: openrouter)
    if settings.vision_adapter == "mock":
        from natureid.adapters.vision.mock_vision import MockVision
        return MockVision(status)
    if settings.vision_adapter != "openrouter":
        status.log(f"vision: unknown adapter '{settings.vision_adapter}', using openrouter")
    from natureid.adapters.vision.openrouter_vision import OpenRouterVision
    return OpenRouterVision(status, settings)


def create_app(settings: Optional[Settings] = None, vision=None) -> FastAPI:
    settings = settings or Settings.from_env()
    status = StatusStore()
    history = HistoryStore(capacity=settings.max_history_items)
    if vision is None:
        vision = build_vision(settings, status)
    status.log(f"vision adapter: {type(vision).__name__}")

    app = FastAPI(title="natureid")
    app.state.settings = settings
    app.state.status = status
    app.state.history = history
    app.state.vision = vision
    app.state.pipeline = IdentifyPipeline(vision=vision, history=history, status_store=status)

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            status.log(f"request rejected: body {length} bytes > {settings.max_body_bytes}")
            return JSONResponse(
                status_code=413,
                content={"message": "Request body too large", "error_code": ERR_TOO_LARGE},
            )
        return await call_next(request)

    @app.exception_handler(NatureIdError)
    async def handle_natureid_error(request: Request, err: NatureIdError):
        return JSONResponse(status_code=err.status_code, content={"message": err.message, "error_code": err.error_code})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, err: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": "Invalid request body", "error_code": ERR_INVALID_INPUT})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, err: StarletteHTTPException):
        message = "Method not allowed" if err.status_code == 405 else str(err.detail)
        return JSONResponse(status_code=err.status_code, content={"message": message}, headers=getattr(err, "headers", None))

    app.include_router(router)
    return app


@router.post("/identify", response_model=IdentifyResponse)
def identify(req: IdentifyRequest, request: Request):
    return request.app.state.pipeline.run(req.image)


@router.get("/history", response_model=list[HistoryEntry])
def get_history(request: Request, type_filter: str = Query("all", alias="type")):
    try:
        return request.app.state.history.list(type_filter)
    except ValueError as e:
        raise InvalidInputError(str(e))


@router.delete("/history", response_model=MessageResponse)
def clear_history(request: Request):
    request.app.state.history.clear()
    request.app.state.status.log("HISTORY cleared")
    return MessageResponse(message="History cleared successfully")


@router.get("/history/{entry_id}", response_model=HistoryEntry)
def get_history_entry(entry_id: str, request: Request):
    entry = request.app.state.history.get_by_id(entry_id)
    if entry is None:
        raise NotFoundError(f"History entry {entry_id} not found")
    return entry


@router.delete("/history/{entry_id}", response_model=DeleteEntryResponse)
def delete_history_entry(entry_id: str, request: Request):
    if not request.app.state.history.delete_by_id(entry_id):
        raise NotFoundError(f"History entry {entry_id} not found")
    request.app.state.status.log(f"HISTORY deleted {entry_id}")
    return DeleteEntryResponse(deleted=True, id=entry_id)


@router.get("/status", response_model=StatusResponse)
def get_status(request: Request):
    state = request.app.state
    return StatusResponse(
        vision_adapter=type(state.vision).__name__,
        vision_ready=bool(getattr(state.vision, "ready", True)),
        history_size=len(state.history),
        history_capacity=state.history.capacity,
        identify_count=state.status.identify_count,
        fallback_count=state.status.fallback_count,
        last_error=state.status.last_error,
        last_identified=state.status.last_identified,
        logs=state.status.logs,
    )


@router.get("/health")
def health(request: Request):
    """Check that the API is up and the vision adapter can take requests."""
    state = request.app.state
    checks = {
        "api": True,
        "vision_adapter": type(state.vision).__name__,
        "vision_ready": bool(getattr(state.vision, "ready", True)),
        "api_key_configured": bool(state.settings.openrouter_api_key),
    }
    checks["all_ok"] = checks["api"] and checks["vision_ready"]
    return checks


app = create_app()
