"""App-wide event and error handlers."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from database.manager import StatisticsStoreError
from realtime.auth import AuthenticationError
from utils.log import get_logger

logger = get_logger(__name__)


def setup_events(app: FastAPI):
    """Set up health check and error handlers for the app."""

    @app.get("/health")
    async def health(request: Request):
        """Liveness plus the number of connected clients."""
        presence = request.app.state.presence
        return {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'onlineUsers': presence.online_count(),
        }

    @app.exception_handler(AuthenticationError)
    async def on_authentication_error(request: Request, error: AuthenticationError):
        """Handle rejected credentials."""
        return JSONResponse(status_code=401, content={'error': str(error)})

    @app.exception_handler(StatisticsStoreError)
    async def on_store_error(request: Request, error: StatisticsStoreError):
        """Handle statistics store failures."""
        logger.error("Statistics store error", path=request.url.path, error=str(error))
        return JSONResponse(status_code=503, content={'error': 'Statistics store unavailable'})

    @app.exception_handler(Exception)
    async def on_error(request: Request, error: Exception):
        """Handle anything else."""
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(status_code=500, content={'error': 'Internal server error'})
