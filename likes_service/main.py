from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Optional
import asyncio
import sys
import uvicorn
from . import __version__
from .config import Settings, get_settings
from .core import LikesPoller, OAuthBase, TokenManager, TokenStore, create_token_store
from .exceptions import ConfigurationError
from .platforms import TwitterOAuth
from .routes import likes_router, oauth_router
from .utils.logger import get_logger

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the likes poller with the app and stop it on shutdown."""
    settings: Settings = app.state.settings
    logger.info(f"Starting likes service in {settings.ENVIRONMENT} environment")
    logger.debug(f"Redirect URI: {settings.REDIRECT_URI}")
    logger.debug(f"Allowed Origins: {settings.cors_origins}")
    logger.info("Visit /auth/login to authenticate a user.")

    poller_task = None
    if settings.POLLER_ENABLED:
        poller_task = asyncio.create_task(app.state.poller.start())

    yield

    if poller_task:
        await app.state.poller.stop()
        poller_task.cancel()
        with suppress(asyncio.CancelledError):
            await poller_task
    logger.info("Shutting down likes service")

def create_app(
    settings: Optional[Settings] = None,
    token_store: Optional[TokenStore] = None,
    oauth_handler: Optional[OAuthBase] = None
) -> FastAPI:
    """Build the application and wire its components from configuration."""
    settings = settings or get_settings()
    token_store = token_store or create_token_store(settings)
    oauth_handler = oauth_handler or TwitterOAuth(
        client_id=settings.CLIENT_ID,
        client_secret=settings.CLIENT_SECRET,
        callback_url=settings.REDIRECT_URI,
        timeout=settings.HTTP_TIMEOUT_SECONDS
    )
    token_manager = TokenManager(token_store, oauth_handler)

    app = FastAPI(
        title="X Likes Service",
        description="Multi-user X OAuth 2.0 login with periodic liked-posts polling",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.token_store = token_store
    app.state.oauth_handler = oauth_handler
    app.state.token_manager = token_manager
    app.state.poller = LikesPoller(
        token_manager,
        interval_seconds=settings.POLL_INTERVAL_SECONDS,
        max_results=settings.LIKES_MAX_RESULTS,
        timezone=settings.POLL_TIMEZONE,
        run_on_start=settings.POLL_ON_STARTUP
    )

    # Signed cookie session holding the PKCE verifier between login and callback
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        https_only=settings.is_production,
        same_site="lax"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(oauth_router, prefix="/auth", tags=["auth"])
    app.include_router(likes_router, tags=["likes"])

    @app.get("/")
    async def root():
        """Root endpoint to verify service is running."""
        return {
            "message": "X Likes Service is running",
            "version": __version__,
            "login": "/auth/login"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "poller_running": app.state.poller.running
        }

    # Error handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions."""
        if exc.status_code >= 500:
            logger.error(f"HTTP error occurred on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled error occurred on {request.url.path}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    return app

def run() -> None:
    """Console entry point: validate configuration and serve the app."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["access"]["fmt"] = settings.LOG_FORMAT

    # The poller lives in-process, so a single worker only
    uvicorn.run(
        create_app(settings),
        host=settings.SERVER_HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=log_config
    )

if __name__ == "__main__":
    run()
