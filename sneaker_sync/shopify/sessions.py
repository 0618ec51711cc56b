"""
Storefront session records kept as one JSON file per session id.
"""

import json
import logging
import os
from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class StorefrontSession(BaseModel):
    """Access grant for one shop (offline sessions are id'd "offline_<shop>")."""

    id: str
    shop: str
    access_token: str
    scope: Optional[str] = None
    is_online: bool = False
    state: Optional[str] = None
    expires: Optional[datetime] = None

    @classmethod
    def offline(cls, shop: str, access_token: str, scope: Optional[str] = None) -> "StorefrontSession":
        return cls(id=f"offline_{shop}", shop=shop, access_token=access_token, scope=scope)


class FileSessionStorage:
    """Sessions stored under a directory, created on first use."""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, session_id: str) -> str:
        # Session ids come from webhooks; keep them inside the directory
        safe_id = os.path.basename(session_id)
        return os.path.join(self.directory, f"{safe_id}.json")

    async def store_session(self, session: StorefrontSession) -> bool:
        with open(self._path(session.id), "w", encoding="utf-8") as f:
            f.write(session.model_dump_json(indent=2))
        return True

    async def load_session(self, session_id: str) -> Optional[StorefrontSession]:
        path = self._path(session_id)
        if not os.path.exists(path):
            return None

        try:
            with open(path, encoding="utf-8") as f:
                return StorefrontSession.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            logger.error(f"Error loading session {session_id}: {e}")
            return None

    async def delete_session(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    async def delete_sessions(self, session_ids: Iterable[str]) -> bool:
        for session_id in session_ids:
            await self.delete_session(session_id)
        return True

    async def find_sessions_by_shop(self, shop: str) -> List[StorefrontSession]:
        """Every readable session belonging to ``shop``; unreadable files are skipped."""
        sessions = []
        for name in sorted(os.listdir(self.directory)):
            if not name.endswith(".json"):
                continue
            try:
                with open(os.path.join(self.directory, name), encoding="utf-8") as f:
                    data = json.load(f)
                if data.get("shop") == shop:
                    sessions.append(StorefrontSession.model_validate(data))
            except (OSError, ValueError, AttributeError) as e:
                logger.debug(f"Skipping unreadable session file {name}: {e}")
        return sessions
