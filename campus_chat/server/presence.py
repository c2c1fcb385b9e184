"""Presence directory: known users, online state and last-seen time."""
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..shared.utils import username_for, utcnow
from .config import DEFAULT_AVATAR
from .database import SessionFactory, session_scope
from .logging_config import configure_logging
from .models import User
from .schemas import ParticipantData, UserInfo, UserOut, UserStatusOut

logger = configure_logging()


def _by_external_id(db: Session, external_id: str) -> Optional[User]:
    return db.query(User).filter(User.mysql_user_id == str(external_id)).first()


class PresenceDirectory:
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory

    def upsert_online(self, external_id: str, info: Optional[UserInfo], socket_id: str) -> UserOut:
        """Create or refresh the user behind a freshly authenticated connection."""
        info = info or UserInfo()
        first_name = info.first_name or "Unknown"
        last_name = info.last_name or "User"
        with session_scope(self.session_factory) as db:
            user = _by_external_id(db, external_id)
            if user is None:
                user = User(mysql_user_id=str(external_id))
                db.add(user)
            user.username = username_for(first_name, last_name)
            user.first_name = first_name
            user.last_name = last_name
            user.avatar = info.avatar or DEFAULT_AVATAR
            user.socket_id = socket_id
            user.online = True
            user.last_seen = utcnow()
            db.commit()
            db.refresh(user)
            logger.info("PRESENCE_ONLINE external_id=%s user_id=%s sid=%s", external_id, user.id, socket_id)
            return UserOut.model_validate(user)

    def mark_offline(self, user_id: int) -> Optional[UserOut]:
        """Disconnect path: offline, fresh last-seen, session handle cleared."""
        with session_scope(self.session_factory) as db:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                return None
            user.online = False
            user.last_seen = utcnow()
            user.socket_id = None
            db.commit()
            logger.info("PRESENCE_OFFLINE user_id=%s", user_id)
            return UserOut.model_validate(user)

    def mark_offline_by_external_id(self, external_id: str) -> Optional[UserOut]:
        """Expired-credential path: the claimed user can no longer prove liveness."""
        with session_scope(self.session_factory) as db:
            user = _by_external_id(db, external_id)
            if user is None:
                return None
            user.online = False
            user.last_seen = utcnow()
            db.commit()
            logger.info("PRESENCE_EXPIRED external_id=%s", external_id)
            return UserOut.model_validate(user)

    def ensure_users(self, participants: Iterable[ParticipantData]) -> List[UserOut]:
        """Insert unseen participants as offline users; existing users stay untouched."""
        result: List[UserOut] = []
        with session_scope(self.session_factory) as db:
            for participant in participants:
                user = _by_external_id(db, participant.id)
                if user is None:
                    user = User(
                        mysql_user_id=participant.id,
                        username=participant.username
                        or username_for(participant.first_name, participant.last_name),
                        first_name=participant.first_name,
                        last_name=participant.last_name,
                        avatar=participant.avatar,
                        online=False,
                        last_seen=utcnow(),
                    )
                    db.add(user)
                    db.flush()
                result.append(UserOut.model_validate(user))
            db.commit()
        return result

    def get(self, user_id: int) -> Optional[UserOut]:
        with session_scope(self.session_factory) as db:
            user = db.query(User).filter(User.id == user_id).first()
            return UserOut.model_validate(user) if user else None

    def all_statuses(self) -> List[UserStatusOut]:
        with session_scope(self.session_factory) as db:
            return [UserStatusOut.model_validate(u) for u in db.query(User).order_by(User.id).all()]
