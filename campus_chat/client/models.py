"""Client-side records for chats, messages and users."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..shared.utils import full_name, parse_timestamp


@dataclass
class ChatUser:
    id: int
    external_id: str
    username: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    online: bool = False
    last_seen: Optional[datetime] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ChatUser":
        return cls(
            id=data["_id"],
            external_id=str(data.get("mysql_user_id", "")),
            username=data.get("username") or "",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            avatar=data.get("avatar"),
            online=bool(data.get("online", False)),
            last_seen=parse_timestamp(data.get("lastSeen")),
        )

    @property
    def display_name(self) -> str:
        return full_name(self.first_name, self.last_name) or self.username


@dataclass
class ChatMessage:
    id: int
    chat_id: int
    sender: ChatUser
    sender_name: str
    content: str
    timestamp: datetime
    sender_avatar: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["_id"],
            chat_id=data["chatId"],
            sender=ChatUser.from_wire(data["senderId"]),
            sender_name=data.get("senderName") or "",
            sender_avatar=data.get("senderAvatar"),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data["timestamp"]),
        )

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        # Server clocks may hand out equal timestamps; the id breaks the tie.
        return (self.timestamp, self.id)


@dataclass
class ChatSummary:
    id: int
    participants: List[ChatUser]
    is_group_chat: bool
    created_at: datetime
    updated_at: datetime
    name: Optional[str] = None
    last_message: Optional[ChatMessage] = None
    created_by: Optional[ChatUser] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ChatSummary":
        last_message = data.get("lastMessage")
        created_by = data.get("createdBy")
        return cls(
            id=data["_id"],
            name=data.get("name"),
            participants=[ChatUser.from_wire(p) for p in data.get("participants", [])],
            is_group_chat=bool(data.get("isGroupChat", False)),
            last_message=ChatMessage.from_wire(last_message) if last_message else None,
            created_by=ChatUser.from_wire(created_by) if created_by else None,
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
        )

    @property
    def last_activity(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.timestamp
        return self.updated_at or self.created_at


@dataclass
class Notification:
    message: ChatMessage
    chat_id: int
    chat_name: str

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Notification":
        message = ChatMessage.from_wire(data["message"])
        return cls(message=message, chat_id=data.get("chatId", message.chat_id), chat_name=data.get("chatName") or "")


@dataclass
class CurrentUser:
    user_id: int
    external_id: str
    username: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "CurrentUser":
        return cls(
            user_id=data["userId"],
            external_id=str(data["mysqlId"]),
            username=data.get("username") or "",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            avatar=data.get("avatar"),
        )


@dataclass
class DirectoryEntry:
    """A selectable user as listed by the roster service."""

    id: str
    first_name: str = ""
    last_name: str = ""
    avatar: Optional[str] = None
    group_name: str = ""

    @classmethod
    def from_roster(cls, data: Dict[str, Any]) -> "DirectoryEntry":
        return cls(
            id=str(data["id"]),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            avatar=data.get("avatar"),
            group_name=data.get("group_name") or "",
        )

    @property
    def display_name(self) -> str:
        return full_name(self.first_name, self.last_name)

    def to_participant(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
        }
