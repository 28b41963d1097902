"""Memory service: load, evolve and persist a user's memory context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import MemoryContext
from .state import update

if TYPE_CHECKING:
    from ..store import ConversationStore

logger = logging.getLogger("socia.memory")


class MemoryService:
    """Applies the memory model to stored contexts.

    Failures propagate to the caller; the relay runs this as a background
    task and treats any failure as advisory.
    """

    def __init__(self, store: ConversationStore):
        self._store = store

    async def update_context(
        self,
        conversation_id: str,
        user_id: str,
        counterpart_id: str,
        content: str,
    ) -> MemoryContext:
        """Fold a message sent by user_id into their context for the conversation."""
        context = await self._store.get_or_create_memory(conversation_id, user_id)
        updated = update(context, content)
        await self._store.save_memory(updated)

        if updated.stage != context.stage:
            logger.info(
                f"STAGE | conv={conversation_id} user={user_id} "
                f"{context.stage.name} -> {updated.stage.name} (counterpart={counterpart_id})"
            )
        return updated
