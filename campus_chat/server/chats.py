"""Conversation store: chats, membership and the last-message pointer."""
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..shared.utils import utcnow
from .database import SessionFactory, session_scope
from .errors import Forbidden, NotFound, ValidationFailed
from .logging_config import configure_logging
from .models import Chat, User, chat_participants
from .schemas import ChatOut

logger = configure_logging()


def is_group(participant_count: int, name: Optional[str]) -> bool:
    return participant_count > 2 or bool(name and name.strip())


def _member_chat(db: Session, chat_id: int, user_id: int) -> Chat:
    """Membership-blind lookup: absent and foreign chats look the same."""
    chat = (
        db.query(Chat)
        .join(chat_participants, chat_participants.c.chat_id == Chat.id)
        .filter(Chat.id == chat_id, chat_participants.c.user_id == user_id)
        .first()
    )
    if chat is None:
        raise NotFound()
    return chat


class ConversationStore:
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory

    def list_for_user(self, user_id: int) -> List[ChatOut]:
        with session_scope(self.session_factory) as db:
            chats = (
                db.query(Chat)
                .join(chat_participants, chat_participants.c.chat_id == Chat.id)
                .filter(chat_participants.c.user_id == user_id)
                .order_by(Chat.updated_at.desc(), Chat.id.desc())
                .all()
            )
            return [ChatOut.model_validate(chat) for chat in chats]

    def get_for_member(self, chat_id: int, user_id: int) -> ChatOut:
        with session_scope(self.session_factory) as db:
            return ChatOut.model_validate(_member_chat(db, chat_id, user_id))

    def require_member(self, chat_id: int, user_id: int) -> None:
        with session_scope(self.session_factory) as db:
            _member_chat(db, chat_id, user_id)

    def find_direct(self, user_ids: Sequence[int]) -> Optional[ChatOut]:
        """Return the direct chat holding exactly this unordered pair, if any."""
        pair = set(user_ids)
        if len(pair) != 2:
            return None
        with session_scope(self.session_factory) as db:
            candidates = (
                db.query(Chat)
                .join(chat_participants, chat_participants.c.chat_id == Chat.id)
                .filter(Chat.is_group_chat.is_(False), chat_participants.c.user_id.in_(pair))
                .group_by(Chat.id)
                .having(func.count(chat_participants.c.user_id) == 2)
                .order_by(Chat.id)
                .all()
            )
            for chat in candidates:
                if {p.id for p in chat.participants} == pair:
                    return ChatOut.model_validate(chat)
            return None

    def create(self, participant_ids: Sequence[int], creator_id: int, name: Optional[str]) -> ChatOut:
        with session_scope(self.session_factory) as db:
            users = db.query(User).filter(User.id.in_(set(participant_ids))).all()
            now = utcnow()
            chat = Chat(
                name=name or None,
                participants=users,
                created_by_id=creator_id,
                is_group_chat=is_group(len(users), name),
                created_at=now,
                updated_at=now,
            )
            db.add(chat)
            db.commit()
            db.refresh(chat)
            logger.info(
                "CHAT_CREATED chat_id=%s creator_id=%s participants=%s group=%s",
                chat.id,
                creator_id,
                len(users),
                chat.is_group_chat,
            )
            return ChatOut.model_validate(chat)

    def update(
        self,
        chat_id: int,
        editor_id: int,
        name: Optional[str],
        participant_external_ids: Sequence[str],
    ) -> Tuple[ChatOut, List[int]]:
        """Apply a creator edit; return the refreshed chat and every affected user id."""
        with session_scope(self.session_factory) as db:
            chat = db.query(Chat).filter(Chat.id == chat_id).first()
            if chat is None:
                raise NotFound("Chat not found.")
            if chat.created_by_id != editor_id:
                # Non-members must not learn that the chat exists.
                if editor_id not in {p.id for p in chat.participants}:
                    raise NotFound("Chat not found.")
                raise Forbidden()

            affected = {p.id for p in chat.participants}
            if name:
                chat.name = name
            if participant_external_ids:
                users = db.query(User).filter(User.mysql_user_id.in_(set(participant_external_ids))).all()
                if editor_id not in {u.id for u in users}:
                    users.append(db.query(User).filter(User.id == editor_id).one())
                if len(users) < 2:
                    raise ValidationFailed("A chat requires at least two participants.")
                chat.participants = users
                chat.is_group_chat = is_group(len(users), chat.name)
            chat.updated_at = utcnow()
            db.commit()
            db.refresh(chat)
            affected.update(p.id for p in chat.participants)
            logger.info("CHAT_UPDATED chat_id=%s editor_id=%s participants=%s", chat.id, editor_id, len(chat.participants))
            return ChatOut.model_validate(chat), sorted(affected)

    def touch_last_message(self, chat_id: int, message_id: int, at: datetime) -> None:
        with session_scope(self.session_factory) as db:
            chat = db.query(Chat).filter(Chat.id == chat_id).first()
            if chat is None:
                raise NotFound()
            chat.last_message_id = message_id
            chat.updated_at = at
            db.commit()
