"""Socia Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .config import get_settings
from .database import get_supabase_client
from .errors import PersistenceError
from .llm import LLMClient
from .logging_config import get_logger, setup_logging
from .memory import MemoryService
from .rate_limit import limiter
from .relay import ConnectionRegistry, RelayEngine
from .routes import ai_router, auth_router, conversations_router, profile_router, ws_router
from .sms import MockSMSService
from .store import ConversationStore
from .suggestions import SuggestionAssembler

logger = get_logger("socia.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the relay and its collaborators; drain background work on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info(f"Starting Socia Backend API (debug={settings.debug})")

    store = ConversationStore(get_supabase_client(settings))
    registry = ConnectionRegistry()
    llm = LLMClient.from_settings(settings)

    app.state.store = store
    app.state.registry = registry
    app.state.engine = RelayEngine(registry, store, MemoryService(store))
    app.state.assembler = SuggestionAssembler(llm, timeout=settings.llm_timeout_seconds)
    app.state.sms = MockSMSService(ttl_seconds=settings.sms_code_ttl_seconds)
    yield

    logger.info("Shutting down Socia Backend API")
    await app.state.engine.drain()
    if llm is not None:
        await llm.aclose()


app = FastAPI(
    title="Socia Backend API",
    description="Real-time chat relay with conversational memory and reply suggestions",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(conversations_router)
app.include_router(ai_router)
app.include_router(ws_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "socia-backend",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health")
async def health(request: Request):
    """Detailed health check with a real store query."""
    db_status = "disconnected"
    try:
        await request.app.state.store.ping()
        db_status = "connected"
    except PersistenceError as e:
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
        "llm": "configured" if request.app.state.assembler.llm_configured else "fallback",
        "online_users": len(request.app.state.registry),
    }
