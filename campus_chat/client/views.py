"""View models derived from the chat store.

Every surface that shows presence (the directory, the open chat's roster and
the status dot of direct chats) reads ``ChatStore.presence``; none of them keep
their own copy of a user's online flag.
"""
from dataclasses import dataclass
from typing import List, Optional

from .config import DEFAULT_AVATAR, GROUP_AVATAR, UNNAMED_GROUP
from .models import ChatMessage, ChatSummary, ChatUser
from .store import ChatStore


@dataclass(frozen=True)
class ChatListItem:
    chat_id: int
    title: str
    preview: str
    avatar: str
    online: Optional[bool]
    active: bool


@dataclass(frozen=True)
class RosterEntry:
    user_id: int
    external_id: str
    name: str
    online: bool


@dataclass(frozen=True)
class DirectoryRow:
    external_id: str
    name: str
    group_name: str
    avatar: str
    online: bool


@dataclass(frozen=True)
class MessageLine:
    message_id: int
    sender: str
    content: str
    time: str
    own: bool


def _me(store: ChatStore) -> Optional[str]:
    return store.current_user.external_id if store.current_user else None


def other_participants(store: ChatStore, chat: ChatSummary) -> List[ChatUser]:
    me = _me(store)
    return [p for p in chat.participants if p.external_id != me]


def direct_peer(store: ChatStore, chat: ChatSummary) -> Optional[ChatUser]:
    others = other_participants(store, chat)
    return others[0] if len(others) == 1 else None


def chat_title(store: ChatStore, chat: ChatSummary) -> str:
    if chat.name:
        return chat.name
    peer = direct_peer(store, chat)
    if peer is not None:
        return peer.display_name
    return UNNAMED_GROUP


def chat_list(store: ChatStore) -> List[ChatListItem]:
    items: List[ChatListItem] = []
    for chat in store.visible_chats():
        peer = direct_peer(store, chat)
        items.append(
            ChatListItem(
                chat_id=chat.id,
                title=chat_title(store, chat),
                preview=chat.last_message.content if chat.last_message else "No messages yet",
                avatar=(peer.avatar or DEFAULT_AVATAR) if peer else GROUP_AVATAR,
                online=store.is_online(peer.external_id) if peer else None,
                active=chat.id == store.active_chat_id,
            )
        )
    return items


def active_roster(store: ChatStore) -> List[RosterEntry]:
    """Participants of the open chat, excluding the current user."""
    if store.active_chat_id is None:
        return []
    chat = store.chats.get(store.active_chat_id)
    if chat is None:
        return []
    return [
        RosterEntry(
            user_id=p.id,
            external_id=p.external_id,
            name=p.display_name,
            online=store.is_online(p.external_id),
        )
        for p in other_participants(store, chat)
    ]


def directory(store: ChatStore, search: str = "") -> List[DirectoryRow]:
    """Selectable users other than the current one, filtered by name or group."""
    me = _me(store)
    needle = search.strip().lower()
    rows: List[DirectoryRow] = []
    for entry in store.directory:
        if entry.id == me:
            continue
        if needle and needle not in entry.display_name.lower() and needle not in entry.group_name.lower():
            continue
        rows.append(
            DirectoryRow(
                external_id=entry.id,
                name=entry.display_name,
                group_name=entry.group_name,
                avatar=entry.avatar or DEFAULT_AVATAR,
                online=store.is_online(entry.id),
            )
        )
    return rows


def can_edit(store: ChatStore, chat_id: int) -> bool:
    chat = store.chats.get(chat_id)
    if chat is None or chat.created_by is None or store.current_user is None:
        return False
    return chat.created_by.id == store.current_user.user_id


def message_lines(store: ChatStore) -> List[MessageLine]:
    me = store.current_user.user_id if store.current_user else None
    return [_line(message, me) for message in store.active_messages()]


def _line(message: ChatMessage, me: Optional[int]) -> MessageLine:
    own = message.sender.id == me
    return MessageLine(
        message_id=message.id,
        sender="You" if own else message.sender.display_name,
        content=message.content,
        time=message.timestamp.strftime("%H:%M"),
        own=own,
    )
