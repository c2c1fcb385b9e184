"""Pydantic schemas for Socket.IO event payloads."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .config import DEFAULT_AVATAR


def _external_id(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


class UserInfo(BaseModel):
    """Display claims a client sends along with its credential."""

    id: Optional[str] = None
    first_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("first_name", "firstName"))
    last_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("last_name", "lastName"))
    avatar: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _external_id(value)


class AuthRequest(BaseModel):
    token: Optional[str] = None
    user_info: Optional[UserInfo] = Field(default=None, validation_alias=AliasChoices("userInfo", "user_info"))


class ParticipantData(BaseModel):
    """Directory entry for a chat participant, as picked from the roster."""

    id: str
    username: Optional[str] = None
    first_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("first_name", "firstName"))
    last_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("last_name", "lastName"))
    avatar: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _external_id(value)


class CreateChatRequest(BaseModel):
    participants_data: List[ParticipantData] = Field(
        default_factory=list, validation_alias=AliasChoices("participantsData", "participants_data")
    )
    group_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("groupName", "group_name"))


class UpdateChatRequest(BaseModel):
    chat_id: int = Field(validation_alias=AliasChoices("chatId", "chat_id"))
    name: Optional[str] = None
    participants: List[str] = Field(default_factory=list)

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [_external_id(item) for item in value]
        return value


class SendMessageRequest(BaseModel):
    chat_id: int = Field(validation_alias=AliasChoices("chatId", "chat_id"))
    content: str

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message content must not be empty")
        return value


chat_id_adapter = TypeAdapter(int)


def parse_chat_id(raw: Any) -> int:
    """Accept a bare chat id or ``{"chatId": ...}``."""
    if isinstance(raw, dict):
        raw = raw.get("chatId", raw.get("chat_id"))
    return chat_id_adapter.validate_python(raw)


class WireModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UserOut(WireModel):
    id: int = Field(alias="_id")
    mysql_user_id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = DEFAULT_AVATAR
    online: bool = False
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")


class MessageOut(WireModel):
    id: int = Field(alias="_id")
    chat_id: int = Field(alias="chatId")
    sender: UserOut = Field(alias="senderId")
    sender_name: str = Field(alias="senderName")
    sender_avatar: Optional[str] = Field(default=None, alias="senderAvatar")
    content: str
    timestamp: datetime


class ChatOut(WireModel):
    id: int = Field(alias="_id")
    name: Optional[str] = None
    participants: List[UserOut]
    is_group_chat: bool = Field(alias="isGroupChat")
    last_message: Optional[MessageOut] = Field(default=None, alias="lastMessage")
    created_by: Optional[UserOut] = Field(default=None, alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class UserStatusOut(WireModel):
    id: int = Field(alias="_id")
    mysql_user_id: str
    online: bool
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")


class StatusChangedOut(WireModel):
    user_id: int = Field(alias="userId")
    mysql_id: str = Field(alias="mysqlId")
    online: bool
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")


class AuthenticatedOut(WireModel):
    user_id: int = Field(alias="userId")
    mysql_id: str = Field(alias="mysqlId")
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None


class ChatMessagesOut(WireModel):
    chat_id: int = Field(alias="chatId")
    messages: List[MessageOut]


class NotificationOut(WireModel):
    message: MessageOut
    chat_id: int = Field(alias="chatId")
    chat_name: str = Field(alias="chatName")


class ErrorOut(WireModel):
    message: str
