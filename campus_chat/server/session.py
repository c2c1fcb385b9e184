"""Per-connection relay session.

A session moves through ``UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED
-> CLOSED``. Each state owns an event table; an event missing from the current
table is either rejected with ``NotAuthenticated`` (chat operations) or
ignored (a duplicate ``authenticate``, anything after close). Events of one
session are handled one at a time; storage calls run in the thread pool and are
the only points where other sessions get to run.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from ..shared import events
from ..shared.utils import full_name
from .chats import ConversationStore, is_group
from .config import UNNAMED_GROUP
from .errors import (
    CredentialExpired,
    Internal,
    InvalidCredential,
    NotAuthenticated,
    RelayError,
    ValidationFailed,
)
from .identity import IdentityVerifier
from .logging_config import configure_logging
from .messages import MessageStore
from .presence import PresenceDirectory
from .schemas import (
    AuthenticatedOut,
    AuthRequest,
    ChatMessagesOut,
    ChatOut,
    CreateChatRequest,
    ErrorOut,
    NotificationOut,
    ParticipantData,
    SendMessageRequest,
    StatusChangedOut,
    UpdateChatRequest,
    UserOut,
    parse_chat_id,
)

logger = configure_logging()

Handler = Callable[[Any], Awaitable[None]]


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class Broadcaster(Protocol):
    """The slice of ``socketio.AsyncServer`` a session talks to."""

    async def emit(self, event: str, data: Any = None, to: Any = None, skip_sid: Any = None) -> None:
        ...

    async def enter_room(self, sid: str, room: str) -> None:
        ...

    async def leave_room(self, sid: str, room: str) -> None:
        ...


def room_for_user(user_id: int) -> str:
    return f"user_{int(user_id)}"


def room_for_chat(chat_id: int) -> str:
    return f"chat_{int(chat_id)}"


def notification_chat_name(chat: ChatOut, sender: UserOut) -> str:
    """Name a recipient would see for this chat in a notification."""
    if chat.name:
        return chat.name
    if not chat.is_group_chat:
        return full_name(sender.first_name, sender.last_name) or sender.username
    return UNNAMED_GROUP


@dataclass
class RelayServices:
    verifier: IdentityVerifier = field(default_factory=IdentityVerifier)
    presence: PresenceDirectory = field(default_factory=PresenceDirectory)
    chats: ConversationStore = field(default_factory=ConversationStore)
    messages: MessageStore = field(default_factory=MessageStore)

    @classmethod
    def from_session_factory(cls, session_factory) -> "RelayServices":
        return cls(
            presence=PresenceDirectory(session_factory),
            chats=ConversationStore(session_factory),
            messages=MessageStore(session_factory),
        )


class RelaySession:
    def __init__(self, sid: str, server: Broadcaster, services: RelayServices):
        self.sid = sid
        self.server = server
        self.services = services
        self.state = SessionState.UNAUTHENTICATED
        self.user: Optional[UserOut] = None
        self.joined_chats: Set[int] = set()
        self._lock = asyncio.Lock()
        self._handlers: Dict[SessionState, Dict[str, Handler]] = {
            SessionState.UNAUTHENTICATED: {
                events.AUTHENTICATE: self._authenticate,
            },
            SessionState.AUTHENTICATING: {
                events.AUTHENTICATE: self._ignore,
            },
            SessionState.AUTHENTICATED: {
                events.AUTHENTICATE: self._ignore,
                events.GET_ALL_USER_STATUSES: self._get_all_user_statuses,
                events.GET_MY_CHATS: self._get_my_chats,
                events.CREATE_NEW_CHAT: self._create_new_chat,
                events.JOIN_CHAT: self._join_chat,
                events.GET_CHAT_MESSAGES: self._get_chat_messages,
                events.SEND_MESSAGE: self._send_message,
                events.UPDATE_CHAT: self._update_chat,
                events.GET_CHAT_DETAILS: self._get_chat_details,
            },
            SessionState.CLOSED: {},
        }

    # -- dispatch --------------------------------------------------------

    async def handle(self, event: str, payload: Any = None) -> None:
        async with self._lock:
            handler = self._handlers[self.state].get(event)
            if handler is None:
                if self.state is SessionState.CLOSED:
                    return
                if event in events.CHAT_OPERATIONS:
                    logger.warning("UNAUTHORIZED_ACCESS sid=%s event=%s reason=not_authenticated", self.sid, event)
                    await self._reply_error(NotAuthenticated())
                else:
                    logger.warning("UNKNOWN_EVENT sid=%s event=%s", self.sid, event)
                return
            try:
                await handler(payload)
            except RelayError as exc:
                logger.info("OPERATION_FAIL sid=%s event=%s code=%s", self.sid, event, exc.code)
                await self._reply_error(exc)
            except ValidationError as exc:
                logger.info("OPERATION_FAIL sid=%s event=%s code=validation_failed", self.sid, event)
                await self._reply_error(ValidationFailed(_first_error(exc)))
            except SQLAlchemyError:
                logger.exception("STORAGE_ERROR sid=%s event=%s", self.sid, event)
                await self._reply_error(Internal(f"Failed to handle {event}."))

    async def close(self) -> None:
        async with self._lock:
            if self.state is SessionState.CLOSED:
                return
            user = self.user
            self.state = SessionState.CLOSED
            if user is None:
                return
            try:
                offline = await self._storage(self.services.presence.mark_offline, user.id)
            except SQLAlchemyError:
                logger.exception("STORAGE_ERROR sid=%s event=disconnect", self.sid)
                offline = None
            if offline is not None:
                await self._broadcast_status(offline)
            for chat_id in sorted(self.joined_chats):
                await self.server.leave_room(self.sid, room_for_chat(chat_id))
            await self.server.leave_room(self.sid, room_for_user(user.id))
            self.joined_chats.clear()
            logger.info("DISCONNECT sid=%s user_id=%s", self.sid, user.id)

    # -- helpers ---------------------------------------------------------

    async def _storage(self, fn, *args):
        return await run_in_threadpool(fn, *args)

    async def _reply(self, event: str, data: Any) -> None:
        await self.server.emit(event, data, to=self.sid)

    async def _reply_error(self, exc: RelayError) -> None:
        await self._reply(events.ERROR, ErrorOut(message=exc.message).dump())

    async def _broadcast_status(self, user: UserOut) -> None:
        payload = StatusChangedOut(
            user_id=user.id, mysql_id=user.mysql_user_id, online=user.online, last_seen=user.last_seen
        )
        await self.server.emit(events.USER_STATUS_CHANGED, payload.dump(), skip_sid=self.sid)

    async def _join(self, chat_id: int) -> None:
        await self.server.enter_room(self.sid, room_for_chat(chat_id))
        self.joined_chats.add(chat_id)

    @property
    def _user_id(self) -> int:
        return self.user.id

    async def _ignore(self, payload: Any) -> None:
        logger.info("AUTH_DUPLICATE sid=%s state=%s", self.sid, self.state.value)

    # -- authentication --------------------------------------------------

    async def _authenticate(self, payload: Any) -> None:
        try:
            request = AuthRequest.model_validate(payload or {})
        except ValidationError:
            await self._reply(events.AUTHENTICATION_ERROR, "Invalid authentication data")
            return

        self.state = SessionState.AUTHENTICATING
        try:
            identity = self.services.verifier.verify(request.token)
        except CredentialExpired as exc:
            self.state = SessionState.UNAUTHENTICATED
            claimed = request.user_info.id if request.user_info else None
            if claimed:
                try:
                    downgraded = await self._storage(self.services.presence.mark_offline_by_external_id, claimed)
                except SQLAlchemyError:
                    logger.exception("STORAGE_ERROR sid=%s event=authenticate", self.sid)
                    downgraded = None
                if downgraded is not None:
                    await self._broadcast_status(downgraded)
            await self._reply(events.AUTHENTICATION_ERROR, exc.message)
            return
        except InvalidCredential as exc:
            self.state = SessionState.UNAUTHENTICATED
            await self._reply(events.AUTHENTICATION_ERROR, exc.message)
            return

        try:
            user = await self._storage(
                self.services.presence.upsert_online, identity.external_id, request.user_info, self.sid
            )
        except SQLAlchemyError:
            logger.exception("STORAGE_ERROR sid=%s event=authenticate", self.sid)
            self.state = SessionState.UNAUTHENTICATED
            await self._reply(events.AUTHENTICATION_ERROR, Internal().message)
            return

        self.user = user
        self.state = SessionState.AUTHENTICATED
        await self.server.enter_room(self.sid, room_for_user(user.id))
        await self._broadcast_status(user)
        await self._reply(
            events.AUTHENTICATED,
            AuthenticatedOut(
                user_id=user.id,
                mysql_id=user.mysql_user_id,
                username=user.username,
                first_name=user.first_name,
                last_name=user.last_name,
                avatar=user.avatar,
            ).dump(),
        )
        logger.info("AUTH_SUCCESS external_id=%s user_id=%s sid=%s", user.mysql_user_id, user.id, self.sid)

    # -- chat operations -------------------------------------------------

    async def _get_all_user_statuses(self, payload: Any) -> None:
        statuses = await self._storage(self.services.presence.all_statuses)
        await self._reply(events.ALL_USER_STATUSES, [status.dump() for status in statuses])

    async def _get_my_chats(self, payload: Any) -> None:
        chats = await self._storage(self.services.chats.list_for_user, self._user_id)
        for chat in chats:
            await self._join(chat.id)
        await self._reply(events.MY_CHATS, [chat.dump() for chat in chats])

    async def _join_chat(self, payload: Any) -> None:
        chat_id = parse_chat_id(payload)
        await self._storage(self.services.chats.require_member, chat_id, self._user_id)
        await self._join(chat_id)
        logger.info("CHAT_JOINED sid=%s user_id=%s chat_id=%s", self.sid, self._user_id, chat_id)

    async def _get_chat_messages(self, payload: Any) -> None:
        chat_id = parse_chat_id(payload)
        await self._storage(self.services.chats.require_member, chat_id, self._user_id)
        messages = await self._storage(self.services.messages.history, chat_id)
        await self._reply(events.CHAT_MESSAGES, ChatMessagesOut(chat_id=chat_id, messages=messages).dump())

    async def _get_chat_details(self, payload: Any) -> None:
        chat_id = parse_chat_id(payload)
        chat = await self._storage(self.services.chats.get_for_member, chat_id, self._user_id)
        await self._reply(events.CHAT_DETAILS, chat.dump())

    async def _create_new_chat(self, payload: Any) -> None:
        request = CreateChatRequest.model_validate(payload or {})
        participants = _unique_participants(request.participants_data, self.user)
        if len(participants) < 2:
            raise ValidationFailed("A chat requires at least two participants.")

        users = await self._storage(self.services.presence.ensure_users, participants)
        user_ids = [u.id for u in users]
        name = request.group_name.strip() if request.group_name else None

        if not is_group(len(user_ids), name):
            existing = await self._storage(self.services.chats.find_direct, user_ids)
            if existing is not None:
                logger.info("CHAT_EXISTS chat_id=%s user_id=%s", existing.id, self._user_id)
                await self._reply(events.CHAT_ALREADY_EXISTS, existing.dump())
                return

        chat = await self._storage(self.services.chats.create, user_ids, self._user_id, name)
        payload_out = chat.dump()
        await self._reply(events.CHAT_CREATED_SUCCESSFULLY, payload_out)
        for user in users:
            if user.id != self._user_id and user.online:
                await self.server.emit(events.NEW_CHAT_CREATED, payload_out, to=room_for_user(user.id))

    async def _update_chat(self, payload: Any) -> None:
        request = UpdateChatRequest.model_validate(payload or {})
        chat, affected = await self._storage(
            self.services.chats.update, request.chat_id, self._user_id, request.name, request.participants
        )
        await self.server.emit(events.CHAT_UPDATED, chat.dump(), to=[room_for_user(uid) for uid in affected])

    async def _send_message(self, payload: Any) -> None:
        request = SendMessageRequest.model_validate(payload or {})
        chat = await self._storage(self.services.chats.get_for_member, request.chat_id, self._user_id)
        # Snapshot from the directory, not the handshake, so profile edits propagate.
        sender = await self._storage(self.services.presence.get, self._user_id)
        if sender is None:
            raise Internal("Sender not found")
        message = await self._storage(self.services.messages.append, chat.id, sender, request.content)
        await self._storage(self.services.chats.touch_last_message, chat.id, message.id, message.timestamp)

        message_out = message.dump()
        # User rooms only: chat rooms may still hold members removed by updateChat.
        rooms: List[str] = [room_for_user(p.id) for p in chat.participants]
        await self.server.emit(events.NEW_MESSAGE, message_out, to=rooms)

        others = [room_for_user(p.id) for p in chat.participants if p.id != sender.id]
        if others:
            notification = NotificationOut(
                message=message, chat_id=chat.id, chat_name=notification_chat_name(chat, sender)
            )
            await self.server.emit(events.NOTIFICATION, notification.dump(), to=others, skip_sid=self.sid)


def _unique_participants(participants: List[ParticipantData], caller: UserOut) -> List[ParticipantData]:
    """Drop repeated ids and make sure the caller is part of the chat."""
    seen: Dict[str, ParticipantData] = {}
    for participant in participants:
        seen.setdefault(participant.id, participant)
    if caller.mysql_user_id not in seen:
        seen[caller.mysql_user_id] = ParticipantData(
            id=caller.mysql_user_id,
            username=caller.username,
            first_name=caller.first_name,
            last_name=caller.last_name,
            avatar=caller.avatar,
        )
    return list(seen.values())


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationFailed.default_message
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
