"""
FastAPI server for storebot.

Provides the chat endpoint consumed by the storefront UI plus product
resolution for the cards the UI renders from reply markers.

Usage:
    python -m storebot.api.server
    # or
    uvicorn storebot.api.server:app --reload --port 8000
"""
import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storebot import __version__
from storebot.api.models import (
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    ResolveRequest,
    ResolveResponse,
    TaxonomyResponse,
)
from storebot.conversation.markers import find_marker_ids, strip_markers
from storebot.conversation.session import ConversationSession
from storebot.core.config import get_config
from storebot.core.controller import ChatController, ChatReply, create_controller
from storebot.core.preload import preload_all
from storebot.data.catalog_store import LocalCatalogStore
from storebot.llm.oracle import OracleImage
from storebot.prompts import render
from storebot.taxonomy.cache import get_taxonomy_cache
from storebot.utils.logger import get_logger

logger = get_logger("api.server")

# Conversation logging for production
CONVERSATION_LOG_DIR = Path(os.getenv("CONVERSATION_LOG_DIR", "logs/sessions"))
# Turns sent without a session_id share this log
ANONYMOUS_SESSION = "anonymous"
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def log_conversation(session_id: str, user_message: str, reply: ChatReply) -> None:
    """Log conversation turn to per-session JSONL file."""
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "user_message": user_message,
        "response_type": reply.response_type,
        "response_message": reply.message,
        "product_ids": reply.product_ids,
        "is_only_similar": reply.is_only_similar,
    }

    safe_id = _UNSAFE_ID_CHARS.sub("_", session_id)[:100] or ANONYMOUS_SESSION
    session_log_file = CONVERSATION_LOG_DIR / f"{safe_id}.jsonl"
    try:
        CONVERSATION_LOG_DIR.mkdir(parents=True, exist_ok=True)
        with open(session_log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
    except OSError as e:
        logger.error(f"Failed to write conversation log: {e}")

    logger.info(f"CONVERSATION [{session_id}]: {json.dumps(log_entry, ensure_ascii=False)}")


def parse_history(raw: Optional[str]) -> ConversationSession:
    """Decode the UI's JSON history; anything malformed counts as no history."""
    if not raw:
        return ConversationSession()
    try:
        history = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Ignoring malformed history: {e}")
        return ConversationSession()
    if not isinstance(history, list):
        logger.warning("Ignoring history that is not a list")
        return ConversationSession()
    return ConversationSession.from_wire(history)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


# Initialize FastAPI app
app = FastAPI(
    title="storebot API",
    description="Storefront shopping assistant API",
    version=__version__,
)

# Enable CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Process-wide controller, created on first use
_controller: Optional[ChatController] = None

# Track preload status
_preload_timings: dict = {}


def get_controller() -> ChatController:
    global _controller
    if _controller is None:
        config = get_config()
        store = LocalCatalogStore(config.catalog_db_path)
        cache = get_taxonomy_cache(store, ttl_seconds=config.taxonomy_ttl_seconds)
        _controller = create_controller(store=store, config=config, taxonomy_cache=cache)
    return _controller


def set_controller(controller: Optional[ChatController]) -> None:
    """Replace (or clear) the process-wide controller."""
    global _controller
    _controller = controller


@app.on_event("startup")
async def startup_event():
    """Preload the catalog and taxonomy at server startup."""
    global _preload_timings

    skip_preload = os.environ.get("STOREBOT_SKIP_PRELOAD", "").lower() in ("1", "true", "yes")
    if skip_preload:
        logger.info("Preloading SKIPPED (STOREBOT_SKIP_PRELOAD=1)")
        _preload_timings = {"skipped": True}
        return

    logger.info("Server starting up - preloading resources...")
    controller = get_controller()
    _preload_timings = preload_all(
        store=controller.store,
        taxonomy_cache=controller.taxonomy_cache,
        config=controller.config,
    )


# API Endpoints

@app.get("/", response_model=HealthResponse)
async def root():
    """Health check endpoint."""
    config = get_config()
    return HealthResponse(
        status="online",
        service="storebot API",
        version=__version__,
        config={
            "model": config.oracle_model,
            "taxonomy_ttl_seconds": config.taxonomy_ttl_seconds,
            "filter_threshold": config.filter_threshold,
            "preload": _preload_timings,
        },
    )


@app.post("/api/chat", response_model=ChatResponse, responses=ERROR_RESPONSES)
def chat(
    prompt: str = Form(""),
    history: str = Form("[]"),
    session_id: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
):
    """
    Main conversation endpoint.

    Form fields:
    - prompt: The customer's message (required, non-empty)
    - history: JSON array of prior messages ``{role: "user"|"model", text}``
    - session_id: Groups the conversation log; without it turns go to a shared
      ``anonymous`` log
    - image: Optional photo attached to the message
    """
    if not prompt or not prompt.strip():
        return error_response(400, "El mensaje no puede estar vacío")

    try:
        session = parse_history(history)

        attachment = None
        if image is not None:
            data = image.file.read()
            if data:
                attachment = OracleImage(data=data, mime_type=image.content_type or "image/jpeg")

        reply = get_controller().respond(session, prompt.strip(), image=attachment)
        log_conversation(session_id or ANONYMOUS_SESSION, prompt, reply)
        return ChatResponse(response=reply.message)

    except Exception as e:
        logger.exception(f"Error in /api/chat: {e}")
        return error_response(500, "Error al procesar la consulta")


@app.post("/api/products/resolve", response_model=ResolveResponse, responses={500: {"model": ErrorResponse}})
def resolve_products(request: ResolveRequest):
    """Resolve each referenced id against the catalog; unknown ids are dropped."""
    text = request.text or ""
    ids: List[str] = request.ids if request.ids is not None else (find_marker_ids(text) or [])

    try:
        store = get_controller().store
        products = []
        for product_id in ids:
            product = store.get(product_id)
            if product is not None:
                products.append(product)
    except Exception as e:
        logger.exception(f"Error in /api/products/resolve: {e}")
        return error_response(500, "Error al cargar los productos")

    return ResolveResponse(products=products, display_text=strip_markers(text))


@app.get("/api/welcome", response_model=ChatResponse)
def welcome():
    """Greeting shown before the first customer message."""
    return ChatResponse(response=render("welcome", get_config()))


@app.get("/api/taxonomy", response_model=TaxonomyResponse)
def taxonomy():
    """Current category -> subcategories map."""
    return TaxonomyResponse(categories=get_controller().taxonomy_cache.get())


if __name__ == "__main__":
    import uvicorn

    print("=" * 60)
    print("storebot API Server")
    print("=" * 60)
    print("API Documentation: http://localhost:8000/docs")
    print("")
    print("Environment variables:")
    print("  STOREBOT_SKIP_PRELOAD=1   - Skip preloading (faster startup, slow first request)")
    print("  STOREBOT_DB_PATH          - Catalog database location")
    print("=" * 60)

    uvicorn.run(app, host="0.0.0.0", port=8000)
