"""FastAPI application setup."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

import config
from database.manager import DatabaseManager
from database.migrations import initialize_database
from game.leaderboard import LeaderboardAggregator
from realtime.auth import AuthenticationError, TokenVerifier
from realtime.service import PresenceService
from routes import leaderboard, results
from utils.log import get_logger
from web.events import setup_events

logger = get_logger(__name__)


def _token_from(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get('token')
    if token:
        return token
    header = websocket.headers.get('authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:]
    return None


def create_app(db_path: Optional[str] = None, jwt_secret: Optional[str] = None) -> FastAPI:
    """Create and configure the web application."""
    store = DatabaseManager(db_path)
    aggregator = LeaderboardAggregator(store)
    verifier = TokenVerifier(store, secret=jwt_secret or config.JWT_SECRET)
    presence = PresenceService(store, aggregator, verifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await initialize_database(store.db_path)
        presence.start()
        yield
        await presence.stop()

    app = FastAPI(title="typesprint", lifespan=lifespan)
    app.state.store = store
    app.state.aggregator = aggregator
    app.state.verifier = verifier
    app.state.presence = presence

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(leaderboard.router)
    app.include_router(results.router)
    setup_events(app)

    @app.websocket("/ws")
    async def realtime_endpoint(websocket: WebSocket):
        """One client's realtime session."""
        # Accept before the writer gets to send anything
        await websocket.accept()
        try:
            connection = await presence.connect(websocket, _token_from(websocket))
        except AuthenticationError as e:
            logger.info("Rejected websocket connection", reason=str(e))
            await websocket.close(code=1008, reason=str(e))
            return

        try:
            while True:
                message = await websocket.receive()
                if message['type'] == 'websocket.disconnect':
                    break
                # text and binary frames carry the same JSON envelope
                raw = message.get('text') or message.get('bytes')
                if raw:
                    await presence.handle_message(connection, raw)
        finally:
            await presence.disconnect(connection)

    return app
