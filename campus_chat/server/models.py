"""Database models for the chat relay."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from ..shared.utils import utcnow
from .database import Base

chat_participants = Table(
    "chat_participants",
    Base.metadata,
    Column("chat_id", Integer, ForeignKey("chats.id"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    mysql_user_id = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    online = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime, default=utcnow)
    socket_id = Column(String, nullable=True)

    chats = relationship("Chat", secondary=chat_participants, back_populates="participants")


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    is_group_chat = Column(Boolean, default=False, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # No FK constraint: messages reference chats, and integrity is kept by the stores.
    last_message_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, index=True)

    participants = relationship("User", secondary=chat_participants, back_populates="chats")
    created_by = relationship("User", foreign_keys=[created_by_id])
    last_message = relationship(
        "Message",
        primaryjoin="Chat.last_message_id == Message.id",
        foreign_keys=[last_message_id],
        uselist=False,
        viewonly=True,
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sender_name = Column(String, nullable=False)
    sender_avatar = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    sender = relationship("User", foreign_keys=[sender_id])
