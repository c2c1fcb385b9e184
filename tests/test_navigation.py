import pytest

from campus_chat.client import storage
from campus_chat.client.models import Notification
from campus_chat.client.navigation import DeepLinkNavigator

from .factories import wire_message, wire_user


@pytest.fixture(autouse=True)
def storage_file(tmp_path, monkeypatch):
    path = tmp_path / "client.json"
    monkeypatch.setattr(storage, "STORAGE_FILE", path)
    return path


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def navigator(clock):
    return DeepLinkNavigator(timeout=5.0, interval=0.1, sleep=clock.sleep, clock=clock)


def notification(chat_id):
    message = wire_message(1, chat_id, 1, wire_user(2, "2", "Bob", "Ray"))
    return Notification.from_wire({"message": message, "chatId": chat_id, "chatName": "Bob Ray"})


def test_on_messages_view_selects_directly(navigator):
    selected, navigated = [], []
    navigator.open_notification(notification(5), True, selected.append, lambda: navigated.append(True))

    assert selected == [5]
    assert navigated == []
    assert storage.pop_pending_chat_id() is None


def test_elsewhere_stores_link_and_navigates(navigator):
    selected, navigated = [], []
    navigator.open_notification(notification(5), False, selected.append, lambda: navigated.append(True))

    assert selected == []
    assert navigated == [True]
    assert storage.load_state()["pending_chat_id"] == 5


def test_pending_chat_is_selected_once_chats_load(navigator, clock):
    storage.store_pending_chat_id(5)
    selected = []

    assert navigator.consume_pending(lambda: clock.now >= 1.0, selected.append) == 5
    assert selected == [5]
    assert navigator.consume_pending(lambda: True, selected.append) is None
    assert selected == [5]


def test_pending_chat_is_abandoned_after_timeout(navigator, clock):
    storage.store_pending_chat_id(5)
    selected = []

    assert navigator.consume_pending(lambda: False, selected.append) is None
    assert selected == []
    assert clock.now >= 5.0
    assert storage.pop_pending_chat_id() is None


def test_logout_clears_credentials_and_link(storage_file):
    storage.store_auth("token", {"id": "1"})
    storage.store_pending_chat_id(3)

    storage.clear_auth()

    assert storage.get_token() is None
    assert storage.get_user() is None
    assert storage.pop_pending_chat_id() is None
