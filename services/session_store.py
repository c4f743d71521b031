# services/session_store.py
"""
In-memory registry of live itinerary flows, keyed by session id
"""

import uuid
from typing import Dict, Optional

from loguru import logger

from agents.planner.graph import ItineraryFlow


class SessionStore:
    """Owns flows between HTTP requests and disposes them on removal."""

    def __init__(self) -> None:
        self._flows: Dict[str, ItineraryFlow] = {}

    def add(self, flow: ItineraryFlow, session_id: Optional[str] = None) -> str:
        session_id = session_id or f"plan_{uuid.uuid4().hex[:12]}"
        self._flows[session_id] = flow
        logger.info(f"Created planner session: {session_id}")
        return session_id

    def get(self, session_id: str) -> Optional[ItineraryFlow]:
        return self._flows.get(session_id)

    async def remove(self, session_id: str) -> bool:
        flow = self._flows.pop(session_id, None)
        if flow is None:
            return False
        await flow.dispose()
        logger.info(f"Disposed planner session: {session_id}")
        return True

    async def clear(self) -> None:
        for session_id in list(self._flows):
            await self.remove(session_id)

    def __len__(self) -> int:
        return len(self._flows)


# Global instance
session_store = SessionStore()
