"""Shared fixtures: in-memory database, fake Socket.IO server, relay harness."""
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from campus_chat.server import models  # noqa: F401  (registers tables)
from campus_chat.server.chats import ConversationStore
from campus_chat.server.database import Base, build_session_factory
from campus_chat.server.identity import IdentityVerifier
from campus_chat.server.messages import MessageStore
from campus_chat.server.presence import PresenceDirectory
from campus_chat.server.session import RelayServices, RelaySession
from campus_chat.shared import events

from .factories import SECRET, auth_payload


class FakeSocketServer:
    """Room semantics of ``socketio.AsyncServer``: every sid sits in its own room."""

    def __init__(self):
        self.sids: set = set()
        self.rooms: Dict[str, set] = defaultdict(set)
        self.sent: List[Tuple[str, str, Any]] = []
        self.handlers: Dict[str, Any] = {}

    def on(self, event: str, handler=None):
        self.handlers[event] = handler

    def connect(self, sid: str) -> None:
        self.sids.add(sid)
        self.rooms[sid].add(sid)

    async def emit(self, event: str, data: Any = None, to: Any = None, room: Any = None, skip_sid: Any = None):
        target = to if to is not None else room
        if target is None:
            recipients = set(self.sids)
        elif isinstance(target, (list, tuple)):
            recipients = set()
            for name in target:
                recipients |= self.rooms.get(name, set())
        else:
            recipients = set(self.rooms.get(target, set()))
        if isinstance(skip_sid, str):
            recipients.discard(skip_sid)
        elif skip_sid:
            recipients -= set(skip_sid)
        for sid in sorted(recipients):
            self.sent.append((sid, event, data))

    async def enter_room(self, sid: str, room: str) -> None:
        self.rooms[room].add(sid)

    async def leave_room(self, sid: str, room: str) -> None:
        self.rooms[room].discard(sid)

    def received(self, sid: str, event: Optional[str] = None) -> List[Any]:
        return [data for s, e, data in self.sent if s == sid and (event is None or e == event)]

    def events_for(self, sid: str) -> List[str]:
        return [e for s, e, _ in self.sent if s == sid]

    def clear(self) -> None:
        self.sent.clear()


class RelayHarness:
    def __init__(self, services: RelayServices):
        self.server = FakeSocketServer()
        self.services = services
        self.sessions: Dict[str, RelaySession] = {}

    def open(self, sid: str) -> RelaySession:
        self.server.connect(sid)
        session = RelaySession(sid, self.server, self.services)
        self.sessions[sid] = session
        return session

    async def login(self, sid: str, external_id: str, first_name: str, last_name: str) -> RelaySession:
        session = self.open(sid)
        await session.handle(events.AUTHENTICATE, auth_payload(external_id, first_name, last_name))
        return session


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def services(session_factory):
    return RelayServices(
        verifier=IdentityVerifier(secret=SECRET),
        presence=PresenceDirectory(session_factory),
        chats=ConversationStore(session_factory),
        messages=MessageStore(session_factory),
    )


@pytest.fixture
def harness(services):
    return RelayHarness(services)


@pytest.fixture
def fake_server():
    return FakeSocketServer()
