"""WebSocket endpoint for the real-time relay."""

from fastapi import APIRouter, WebSocket

from ..auth import validate_token
from ..config import get_settings
from ..errors import AuthorizationError
from ..logging_config import get_logger, log_auth_event
from ..relay import CLOSE_POLICY_VIOLATION, ClientConnection

logger = get_logger("socia.relay")
router = APIRouter(tags=["relay"])


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, token: str | None = None):
    """
    Authenticate with ``?token=<jwt>`` and join the relay.

    A missing or invalid token closes the socket with 1008 before the
    connection is registered.
    """
    try:
        user_id = validate_token(token, get_settings())
    except AuthorizationError as e:
        log_auth_event("websocket", "-", False, str(e))
        await websocket.close(code=CLOSE_POLICY_VIOLATION)
        return

    await websocket.accept()
    engine = websocket.app.state.engine
    await engine.serve(ClientConnection(user_id, websocket))
