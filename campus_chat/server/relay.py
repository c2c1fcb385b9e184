"""Socket.IO wiring: one ``RelaySession`` per connected socket id."""
from typing import Any, Dict, Optional

import socketio

from ..shared import events
from .logging_config import configure_logging
from .session import RelayServices, RelaySession

logger = configure_logging()

RELAYED_EVENTS = (events.AUTHENTICATE,) + events.CHAT_OPERATIONS


class Relay:
    def __init__(self, server: socketio.AsyncServer, services: Optional[RelayServices] = None):
        self.server = server
        self.services = services or RelayServices()
        self.sessions: Dict[str, RelaySession] = {}

    def register(self) -> "Relay":
        self.server.on("connect", self.on_connect)
        self.server.on("disconnect", self.on_disconnect)
        for event in RELAYED_EVENTS:
            self.server.on(event, self._forward(event))
        return self

    async def on_connect(self, sid: str, environ: Dict[str, Any], auth: Any = None) -> None:
        self.sessions[sid] = RelaySession(sid, self.server, self.services)
        logger.info("CONNECT sid=%s", sid)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        session = self.sessions.pop(sid, None)
        if session is not None:
            await session.close()
        logger.info("SOCKET_CLOSED sid=%s reason=%s", sid, reason)

    def _forward(self, event: str):
        async def handler(sid: str, data: Any = None) -> None:
            session = self.sessions.get(sid)
            if session is None:
                logger.warning("UNKNOWN_SESSION sid=%s event=%s", sid, event)
                return
            await session.handle(event, data)

        return handler
