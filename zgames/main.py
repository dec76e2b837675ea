import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import async_sessionmaker

from zgames.config.feature_flags import feature_flags
from zgames.config.settings import settings
from zgames.database import init_db, close_db, AsyncSessionLocal
from zgames.errors import register_error_handlers
from zgames.rate_limit import limiter
from zgames.realtime.broadcast_adapter import BroadcastAdapter
from zgames.realtime.connection_manager import ConnectionManager, set_connection_manager
from zgames.realtime.in_memory_adapter import InMemoryAdapter
from zgames.realtime.redis_adapter import create_broadcast_adapter
from zgames.routes import leaderboard_scoring
from zgames.services.change_notifier import ChangeNotifier
from zgames.services.score_recorder_service import ScoreRecorderService

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


def _use_adapter(app: FastAPI, adapter: BroadcastAdapter) -> None:
    app.state.broadcast_adapter = adapter
    app.state.notifier.adapter = adapter
    app.state.connection_manager.broadcast_adapter = adapter


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Z Games scoring backend...")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    if feature_flags.FEATURE_REDIS_BROADCAST:
        adapter = await create_broadcast_adapter(use_redis=True, redis_url=settings.redis_url)
        _use_adapter(app, adapter)
        logger.info("✓ Redis broadcast enabled")

    manager: ConnectionManager = app.state.connection_manager
    await manager.start()
    set_connection_manager(manager)

    yield

    logger.info("Shutting down application...")
    await manager.stop()
    set_connection_manager(None)
    try:
        await app.state.broadcast_adapter.close()
        await close_db()
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}")


def create_app(
    session_factory: Optional[async_sessionmaker] = None,
    broadcast_adapter: Optional[BroadcastAdapter] = None,
) -> FastAPI:
    """
    Build the API application.

    Services are wired here rather than in lifespan so an app driven without
    lifespan events (httpx ASGITransport) is fully usable.
    """
    app = FastAPI(
        title="Z Games Scoring API",
        description="Tournament scoring and leaderboards for Z Games",
        version="1.0.0",
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
        lifespan=lifespan
    )

    adapter = broadcast_adapter or InMemoryAdapter()
    notifier = ChangeNotifier(adapter)
    app.state.session_factory = session_factory or AsyncSessionLocal
    app.state.broadcast_adapter = adapter
    app.state.notifier = notifier
    app.state.connection_manager = ConnectionManager(adapter)
    app.state.score_recorder = ScoreRecorderService(
        session_factory=app.state.session_factory,
        notifier=notifier
    )

    # Attach rate limiter to the app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]
    origins.extend(settings.allowed_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

        error_details = [
            {"loc": error.get("loc"), "msg": error.get("msg"), "type": error.get("type")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "Validation Error",
                "code": "VALIDATION_ERROR",
                "details": error_details
            }
        )

    register_error_handlers(app)

    app.include_router(leaderboard_scoring.router)
    app.include_router(leaderboard_scoring.ws_router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
            "features": feature_flags.get_all_flags(),
        }

    return app


app = create_app()
