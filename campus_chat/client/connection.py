"""Socket.IO connection feeding server events into the chat store."""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from ..shared import events
from .config import RECONNECT_ATTEMPTS, RECONNECT_DELAY, SERVER_URL
from .models import DirectoryEntry
from .store import ChatStore, MessageOutcome

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class ChatConnection:
    """Owns the socket, the reconnect policy and the event-to-store routing.

    ``on_change`` is called with the name of every server event that touched
    the store; ``on_alert`` receives human-readable errors that need the
    user's attention.
    """

    def __init__(
        self,
        store: ChatStore,
        server_url: str = SERVER_URL,
        client: Optional[socketio.Client] = None,
        on_change: Optional[Listener] = None,
        on_alert: Optional[Listener] = None,
        attempts: int = RECONNECT_ATTEMPTS,
        delay: float = RECONNECT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.server_url = server_url
        # Reconnection is driven here so that giving up can disable the chat.
        self.client = client or socketio.Client(reconnection=False)
        self.on_change = on_change or (lambda event: None)
        self.on_alert = on_alert or (lambda message: None)
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep
        self.auth: Optional[Dict[str, Any]] = None
        self.authenticated = False
        self.disabled_reason: Optional[str] = None
        self._closing = False
        self._register()

    # -- lifecycle --------------------------------------------------------

    def start(self, token: str, user_info: Dict[str, Any]) -> bool:
        self.auth = {
            "token": token,
            "userInfo": {
                "id": user_info.get("id"),
                "first_name": user_info.get("first_name"),
                "last_name": user_info.get("last_name"),
                "avatar": user_info.get("avatar") or "assets/profile-chat.png",
            },
        }
        self._closing = False
        return self._connect_with_retry()

    def stop(self) -> None:
        self._closing = True
        self.client.disconnect()

    def _connect_with_retry(self) -> bool:
        for attempt in range(1, self.attempts + 1):
            try:
                self.client.connect(self.server_url)
                return True
            except SocketConnectionError as exc:
                logger.warning("Connection attempt %s/%s failed: %s", attempt, self.attempts, exc)
                if attempt < self.attempts:
                    self.sleep(self.delay)
        self.disable("Could not connect to the chat server. Chat is unavailable.")
        return False

    def disable(self, message: str) -> None:
        self.disabled_reason = message
        self.authenticated = False
        logger.error("Chat disabled: %s", message)
        self.on_alert(message)

    @property
    def enabled(self) -> bool:
        return self.disabled_reason is None and self.authenticated

    # -- outbound ---------------------------------------------------------

    def _emit(self, event: str, data: Any = None) -> None:
        if data is None:
            self.client.emit(event)
        else:
            self.client.emit(event, data)

    def select_chat(self, chat_id: int) -> None:
        with self.store.lock:
            self.store.open_chat(chat_id)
            known = self.store.has_chat(chat_id)
        self._emit(events.GET_CHAT_MESSAGES, chat_id)
        if not known:
            self._emit(events.GET_CHAT_DETAILS, chat_id)
        self.on_change(events.GET_CHAT_MESSAGES)

    def send_message(self, content: str) -> bool:
        chat_id = self.store.active_chat_id
        content = content.strip()
        if chat_id is None or not content:
            return False
        self._emit(events.SEND_MESSAGE, {"chatId": chat_id, "content": content})
        return True

    def create_chat(self, selected: Iterable[DirectoryEntry], name: Optional[str] = None) -> bool:
        participants: Dict[str, Dict[str, Any]] = {}
        for entry in selected:
            participants.setdefault(entry.id, entry.to_participant())
        me = self.store.current_user
        if me is not None and me.external_id not in participants:
            participants[me.external_id] = {
                "id": me.external_id,
                "first_name": me.first_name,
                "last_name": me.last_name,
                "avatar": me.avatar,
            }
        if len(participants) < 2:
            self.on_alert("Please select at least one other user.")
            return False
        self._emit(
            events.CREATE_NEW_CHAT,
            {"participantsData": list(participants.values()), "groupName": (name or "").strip() or None},
        )
        return True

    def update_chat(self, chat_id: int, name: Optional[str], participant_ids: List[str]) -> None:
        self._emit(events.UPDATE_CHAT, {"chatId": chat_id, "name": name, "participants": participant_ids})

    # -- inbound ----------------------------------------------------------

    def _register(self) -> None:
        self.client.on("connect", self._on_connect)
        self.client.on("disconnect", self._on_disconnect)
        handlers = {
            events.AUTHENTICATED: self._on_authenticated,
            events.AUTHENTICATION_ERROR: self._on_authentication_error,
            events.ALL_USER_STATUSES: self._on_all_user_statuses,
            events.USER_STATUS_CHANGED: self._on_user_status_changed,
            events.MY_CHATS: self._on_my_chats,
            events.CHAT_CREATED_SUCCESSFULLY: self._on_own_chat,
            events.CHAT_ALREADY_EXISTS: self._on_own_chat,
            events.NEW_CHAT_CREATED: self._on_new_chat_created,
            events.CHAT_UPDATED: self._on_chat_updated,
            events.CHAT_DETAILS: self._on_chat_details,
            events.CHAT_MESSAGES: self._on_chat_messages,
            events.NEW_MESSAGE: self._on_new_message,
            events.NOTIFICATION: self._on_notification,
            events.ERROR: self._on_error,
        }
        for event, handler in handlers.items():
            self.client.on(event, self._locked(event, handler))

    def _locked(self, event: str, handler: Callable[[Any], None]) -> Callable[..., None]:
        def wrapper(data: Any = None) -> None:
            with self.store.lock:
                handler(data)
            self.on_change(event)

        return wrapper

    def _on_connect(self) -> None:
        logger.info("Socket connected, authenticating")
        if self.auth is not None:
            self._emit(events.AUTHENTICATE, self.auth)

    def _on_disconnect(self, reason: Any = None) -> None:
        self.authenticated = False
        with self.store.lock:
            # A fresh myChats must arrive before deep links may select a chat.
            self.store.chats_loaded = False
        if self._closing or self.disabled_reason is not None:
            return
        logger.warning("Socket disconnected (%s), reconnecting", reason)
        self.client.start_background_task(self._connect_with_retry)

    def _on_authenticated(self, data: Dict[str, Any]) -> None:
        self.store.set_identity(data)
        self.authenticated = True
        self._emit(events.GET_ALL_USER_STATUSES)
        self._emit(events.GET_MY_CHATS)

    def _on_authentication_error(self, message: Any) -> None:
        self._closing = True
        self.disable(f"Authentication failed: {message}. Please re-login.")

    def _on_all_user_statuses(self, data: List[Dict[str, Any]]) -> None:
        self.store.apply_all_statuses(data or [])

    def _on_user_status_changed(self, data: Dict[str, Any]) -> None:
        self.store.apply_status(data)

    def _on_my_chats(self, data: List[Dict[str, Any]]) -> None:
        # The relay joins every listed chat as part of answering getMyChats.
        self.store.replace_chats(data or [])

    def _on_own_chat(self, data: Dict[str, Any]) -> None:
        chat = self.store.upsert_chat(data)
        self._emit(events.JOIN_CHAT, chat.id)
        self.store.open_chat(chat.id)
        self._emit(events.GET_CHAT_MESSAGES, chat.id)

    def _on_new_chat_created(self, data: Dict[str, Any]) -> None:
        chat = self.store.upsert_chat(data)
        self._emit(events.JOIN_CHAT, chat.id)

    def _on_chat_updated(self, data: Dict[str, Any]) -> None:
        chat = self.store.upsert_chat(data)
        me = self.store.current_user
        if me is not None and all(p.external_id != me.external_id for p in chat.participants):
            self.store.drop_chat(chat.id)

    def _on_chat_details(self, data: Dict[str, Any]) -> None:
        chat = self.store.upsert_chat(data)
        self._emit(events.JOIN_CHAT, chat.id)

    def _on_chat_messages(self, data: Dict[str, Any]) -> None:
        self.store.receive_history(data["chatId"], data.get("messages", []))

    def _on_new_message(self, data: Dict[str, Any]) -> None:
        outcome = self.store.receive_message(data)
        if outcome is MessageOutcome.UNKNOWN_CHAT:
            self._emit(events.GET_CHAT_DETAILS, data["chatId"])

    def _on_notification(self, data: Dict[str, Any]) -> None:
        self.store.push_notification(data)

    def _on_error(self, data: Any) -> None:
        message = data.get("message") if isinstance(data, dict) else str(data)
        self.on_alert(message or "Unknown error")
