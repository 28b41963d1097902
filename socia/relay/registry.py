"""Connection registry: at most one live connection per user.

The registry is constructed by the application and handed to whoever
needs it; there is no module-level instance. A single ``threading.Lock``
guards the mapping. Nothing awaits or touches the network while holding it.
"""

import logging
import threading
from typing import Generic, TypeVar

logger = logging.getLogger("socia.relay.registry")

H = TypeVar("H")


class ConnectionRegistry(Generic[H]):
    """Map of user_id -> connection handle."""

    def __init__(self):
        self._connections: dict[str, H] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, handle: H) -> H | None:
        """Register handle for user_id, replacing any existing one.

        Returns the replaced handle (if any) so the caller can close it.
        """
        with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = handle
        if previous is not None and previous is not handle:
            logger.info(f"Replaced connection for user {user_id}")
            return previous
        return None

    def lookup(self, user_id: str) -> H | None:
        with self._lock:
            return self._connections.get(user_id)

    def remove(self, user_id: str, handle: H) -> bool:
        """Remove user_id only if its registered handle is ``handle``.

        A late removal from a connection that has already been replaced is
        a no-op, so it cannot evict the newer connection.
        """
        with self._lock:
            if self._connections.get(user_id) is not handle:
                return False
            del self._connections[user_id]
        return True

    def online_users(self) -> list[str]:
        with self._lock:
            return list(self._connections)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
