"""Notification deep links that survive a switch between views."""
import logging
import time
from typing import Callable, Optional

from . import storage
from .config import PENDING_CHAT_POLL_INTERVAL, PENDING_CHAT_TIMEOUT
from .models import Notification

logger = logging.getLogger(__name__)


class DeepLinkNavigator:
    def __init__(
        self,
        timeout: float = PENDING_CHAT_TIMEOUT,
        interval: float = PENDING_CHAT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self.interval = interval
        self.sleep = sleep
        self.clock = clock

    def open_notification(
        self,
        notification: Notification,
        on_messages_view: bool,
        select: Callable[[int], None],
        navigate: Callable[[], None],
    ) -> None:
        if on_messages_view:
            select(notification.chat_id)
            return
        storage.store_pending_chat_id(notification.chat_id)
        navigate()

    def consume_pending(self, chats_ready: Callable[[], bool], select: Callable[[int], None]) -> Optional[int]:
        """On arrival: select the stored chat once the chat list has loaded.

        The stored id is removed before waiting, so a timed-out link is not
        retried on the next arrival.
        """
        chat_id = storage.pop_pending_chat_id()
        if chat_id is None:
            return None
        deadline = self.clock() + self.timeout
        while not chats_ready():
            if self.clock() >= deadline:
                logger.warning("Gave up waiting for chat list to select chat %s", chat_id)
                return None
            self.sleep(self.interval)
        select(chat_id)
        return chat_id
