# storage/session_store.py
"""JSON file store for story contexts."""

from __future__ import annotations

import asyncio
import os

import structlog

from config import settings
from story.models import StoryContext

logger = structlog.get_logger(__name__)


class JsonSessionStore:
    """Persist one ``<session_id>.json`` file per session.

    ``save`` matches the session ``on_session_updated`` hook signature.
    """

    def __init__(self, directory: str = settings.SESSION_STORE_DIR) -> None:
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def path_for(self, session_id: str) -> str:
        safe_id = "".join(c if c.isalnum() or c in ["_", "-"] else "_" for c in session_id)
        return os.path.join(self.directory, f"{safe_id}.json")

    async def save(self, context: StoryContext) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._save_sync, context)

    def _save_sync(self, context: StoryContext) -> None:
        path = self.path_for(context.session_id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(context.model_dump_json(indent=2))
        os.replace(tmp_path, path)
        logger.debug(
            "Saved story session.",
            session_id=context.session_id,
            beats=context.beat_count,
            path=path,
        )

    async def load(self, session_id: str) -> StoryContext | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_sync, session_id)

    def _load_sync(self, session_id: str) -> StoryContext | None:
        path = self.path_for(session_id)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as f:
            return StoryContext.model_validate_json(f.read())

    async def delete(self, session_id: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._delete_sync, session_id)

    def _delete_sync(self, session_id: str) -> bool:
        path = self.path_for(session_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        logger.debug("Deleted story session.", session_id=session_id, path=path)
        return True
