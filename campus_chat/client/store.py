"""Client-side reconciliation of chats, messages and presence.

The store is the single source every view derives from. It never talks to
the network itself; ``connection.ChatConnection`` feeds server events in.

Each opened chat runs a small state machine::

    LOADING --push--> PENDING_MERGE --push--> PENDING_MERGE
    LOADING | PENDING_MERGE --history--> READY
    READY --push--> READY            (insert, dedupe by id, re-sort)
    READY --history--> READY         (resync)

Pushes that arrive while history is in flight are held back and only the ones
newer than the last history entry survive the merge.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .config import NOTIFICATION_LIMIT
from .models import ChatMessage, ChatSummary, CurrentUser, DirectoryEntry, Notification


class ChatState(Enum):
    LOADING = "loading"
    PENDING_MERGE = "pending_merge"
    READY = "ready"


class MessageOutcome(Enum):
    RENDERED = "rendered"
    PENDING = "pending"
    DUPLICATE = "duplicate"
    BACKGROUND = "background"
    UNKNOWN_CHAT = "unknown_chat"


@dataclass
class ChatTimeline:
    state: ChatState = ChatState.LOADING
    messages: List[ChatMessage] = field(default_factory=list)
    pending: List[ChatMessage] = field(default_factory=list)

    def message_ids(self) -> set:
        return {m.id for m in self.messages}


def sort_messages(messages: Iterable[ChatMessage]) -> List[ChatMessage]:
    return sorted(messages, key=lambda m: m.sort_key)


def merge_history(history: List[ChatMessage], pending: List[ChatMessage]) -> List[ChatMessage]:
    """History wins; pending entries survive only if strictly newer than its tail."""
    by_id: Dict[int, ChatMessage] = {}
    for message in history:
        by_id.setdefault(message.id, message)
    ordered = sort_messages(by_id.values())
    last_timestamp = ordered[-1].timestamp if ordered else None
    for message in pending:
        if message.id in by_id:
            continue
        if last_timestamp is not None and message.timestamp <= last_timestamp:
            continue
        by_id[message.id] = message
    return sort_messages(by_id.values())


class ChatStore:
    def __init__(self, notification_limit: int = NOTIFICATION_LIMIT):
        self.lock = threading.RLock()
        self.notification_limit = notification_limit
        self.current_user: Optional[CurrentUser] = None
        self.chats: Dict[int, ChatSummary] = {}
        self.chat_order: List[int] = []
        self.timelines: Dict[int, ChatTimeline] = {}
        self.presence: Dict[str, bool] = {}
        self.notifications: List[Notification] = []
        self.directory: List[DirectoryEntry] = []
        self.active_chat_id: Optional[int] = None
        self.chats_loaded = False

    # -- identity ---------------------------------------------------------

    def set_identity(self, payload: Dict[str, Any]) -> CurrentUser:
        self.current_user = CurrentUser.from_wire(payload)
        self.presence[self.current_user.external_id] = True
        return self.current_user

    # -- chat list --------------------------------------------------------

    def replace_chats(self, payload: List[Dict[str, Any]]) -> List[ChatSummary]:
        chats = [ChatSummary.from_wire(item) for item in payload]
        self.chats = {chat.id: chat for chat in chats}
        self.chat_order = [
            chat.id for chat in sorted(chats, key=lambda c: (c.last_activity, c.id), reverse=True)
        ]
        for chat in chats:
            self._seed_presence(chat)
        self.chats_loaded = True
        return self.visible_chats()

    def upsert_chat(self, payload: Dict[str, Any]) -> ChatSummary:
        chat = ChatSummary.from_wire(payload)
        self.chats[chat.id] = chat
        self._move_to_top(chat.id)
        self._seed_presence(chat)
        return chat

    def drop_chat(self, chat_id: int) -> None:
        """Forget a chat the current user was removed from."""
        self.chats.pop(chat_id, None)
        self.timelines.pop(chat_id, None)
        if chat_id in self.chat_order:
            self.chat_order.remove(chat_id)
        if self.active_chat_id == chat_id:
            self.active_chat_id = None

    def visible_chats(self) -> List[ChatSummary]:
        return [self.chats[chat_id] for chat_id in self.chat_order if chat_id in self.chats]

    def has_chat(self, chat_id: int) -> bool:
        return chat_id in self.chats

    def _move_to_top(self, chat_id: int) -> None:
        if chat_id in self.chat_order:
            self.chat_order.remove(chat_id)
        self.chat_order.insert(0, chat_id)

    def _seed_presence(self, chat: ChatSummary) -> None:
        # Live pushes and status snapshots are fresher than a chat projection.
        for participant in chat.participants:
            self.presence.setdefault(participant.external_id, participant.online)

    # -- messages ---------------------------------------------------------

    def open_chat(self, chat_id: int) -> ChatTimeline:
        """Select a chat: drop its stale cache and wait for history."""
        self.active_chat_id = chat_id
        timeline = ChatTimeline()
        self.timelines[chat_id] = timeline
        return timeline

    def close_chat(self) -> None:
        self.active_chat_id = None

    def receive_history(self, chat_id: int, payload: List[Dict[str, Any]]) -> bool:
        """Apply a history response; returns False when it is for another chat."""
        if chat_id != self.active_chat_id:
            return False
        timeline = self.timelines.setdefault(chat_id, ChatTimeline())
        history = [ChatMessage.from_wire(item) for item in payload]
        if timeline.state is ChatState.READY:
            held_back = timeline.messages
        else:
            held_back = timeline.pending
        timeline.messages = merge_history(history, held_back)
        timeline.pending = []
        timeline.state = ChatState.READY
        return True

    def receive_message(self, payload: Dict[str, Any]) -> MessageOutcome:
        """Route a pushed message; ``UNKNOWN_CHAT`` asks the caller to fetch details."""
        message = ChatMessage.from_wire(payload)
        chat = self.chats.get(message.chat_id)
        if chat is not None:
            if chat.last_message is None or message.sort_key >= chat.last_message.sort_key:
                chat.last_message = message
                chat.updated_at = max(chat.updated_at, message.timestamp)
            self._move_to_top(chat.id)

        if message.chat_id != self.active_chat_id:
            if chat is None:
                return MessageOutcome.UNKNOWN_CHAT
            # Only the active chat is rendered; others refetch when opened.
            self.timelines.pop(message.chat_id, None)
            return MessageOutcome.BACKGROUND

        # A deep-linked chat can be open before its details arrive.
        outcome = self._apply_to_active(message)
        return MessageOutcome.UNKNOWN_CHAT if chat is None else outcome

    def _apply_to_active(self, message: ChatMessage) -> MessageOutcome:
        timeline = self.timelines.setdefault(message.chat_id, ChatTimeline())
        if timeline.state is ChatState.READY:
            if message.id in timeline.message_ids():
                return MessageOutcome.DUPLICATE
            timeline.messages = sort_messages(timeline.messages + [message])
            return MessageOutcome.RENDERED

        if any(p.id == message.id for p in timeline.pending):
            return MessageOutcome.DUPLICATE
        timeline.pending.append(message)
        timeline.state = ChatState.PENDING_MERGE
        return MessageOutcome.PENDING

    def active_messages(self) -> List[ChatMessage]:
        if self.active_chat_id is None:
            return []
        timeline = self.timelines.get(self.active_chat_id)
        if timeline is None or timeline.state is not ChatState.READY:
            return []
        return list(timeline.messages)

    def active_state(self) -> Optional[ChatState]:
        if self.active_chat_id is None or self.active_chat_id not in self.timelines:
            return None
        return self.timelines[self.active_chat_id].state

    # -- presence ---------------------------------------------------------

    def apply_status(self, payload: Dict[str, Any]) -> str:
        external_id = str(payload["mysqlId"])
        self.presence[external_id] = bool(payload.get("online"))
        return external_id

    def apply_all_statuses(self, payload: List[Dict[str, Any]]) -> None:
        for item in payload:
            self.presence[str(item["mysql_user_id"])] = bool(item.get("online"))

    def is_online(self, external_id: str) -> bool:
        return self.presence.get(str(external_id), False)

    # -- notifications ----------------------------------------------------

    def push_notification(self, payload: Dict[str, Any]) -> Optional[Notification]:
        notification = Notification.from_wire(payload)
        if notification.chat_id == self.active_chat_id:
            return None
        if any(n.message.id == notification.message.id for n in self.notifications):
            return None
        self.notifications.insert(0, notification)
        del self.notifications[self.notification_limit:]
        return notification

    # -- directory --------------------------------------------------------

    def set_directory(self, entries: List[DirectoryEntry]) -> None:
        self.directory = list(entries)
