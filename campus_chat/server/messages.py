"""Message store: the append-only per-chat log."""
from typing import List, Optional

from ..shared.utils import username_for, utcnow
from .config import DEFAULT_AVATAR
from .database import SessionFactory, session_scope
from .logging_config import configure_logging
from .models import Message
from .schemas import MessageOut, UserOut

logger = configure_logging()


class MessageStore:
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory

    def append(self, chat_id: int, sender: UserOut, content: str) -> MessageOut:
        """Persist a message with a snapshot of the sender's current profile."""
        with session_scope(self.session_factory) as db:
            message = Message(
                chat_id=chat_id,
                sender_id=sender.id,
                sender_name=username_for(sender.first_name, sender.last_name),
                sender_avatar=sender.avatar or DEFAULT_AVATAR,
                content=content,
                timestamp=utcnow(),
            )
            db.add(message)
            db.commit()
            db.refresh(message)
            logger.info(
                "MESSAGE_SENT chat_id=%s sender_id=%s message_id=%s length=%s",
                chat_id,
                sender.id,
                message.id,
                len(content),
            )
            return MessageOut.model_validate(message)

    def history(self, chat_id: int) -> List[MessageOut]:
        """Full history, oldest first; equal timestamps fall back to insertion id."""
        with session_scope(self.session_factory) as db:
            messages = (
                db.query(Message)
                .filter(Message.chat_id == chat_id)
                .order_by(Message.timestamp, Message.id)
                .all()
            )
            return [MessageOut.model_validate(msg) for msg in messages]
