import pytest
from socketio.exceptions import ConnectionError as SocketConnectionError

from campus_chat.client.connection import ChatConnection
from campus_chat.client.models import DirectoryEntry
from campus_chat.client.store import ChatStore
from campus_chat.shared import events

from .factories import make_token, wire_chat, wire_identity, wire_message, wire_user

ANN = wire_user(1, "1", "Ann", "Lee")
BOB = wire_user(2, "2", "Bob", "Ray")
USER_INFO = {"id": "1", "first_name": "Ann", "last_name": "Lee"}


class FakeSocketClient:
    """Records emits and lets tests fire server events by name."""

    def __init__(self, failures=0):
        self.failures = failures
        self.handlers = {}
        self.emitted = []
        self.connect_calls = 0
        self.connected = False

    def on(self, event, handler=None):
        self.handlers[event] = handler

    def connect(self, url):
        self.connect_calls += 1
        if self.connect_calls <= self.failures:
            raise SocketConnectionError("refused")
        self.connected = True
        self.handlers["connect"]()

    def disconnect(self):
        self.connected = False
        self.handlers["disconnect"]("client disconnect")

    def emit(self, event, data=None):
        self.emitted.append((event, data))

    def start_background_task(self, target, *args):
        return target(*args)

    def fire(self, event, data=None):
        self.handlers[event](data)

    def sent(self, event):
        return [data for name, data in self.emitted if name == event]


@pytest.fixture
def alerts():
    return []


def connect(client, alerts, store=None):
    store = store or ChatStore()
    connection = ChatConnection(store, "http://chat", client=client, on_alert=alerts.append, sleep=lambda s: None)
    connection.start(make_token("1"), USER_INFO)
    return connection


def authenticate(client):
    client.fire(events.AUTHENTICATED, wire_identity(ANN))
    client.fire(events.MY_CHATS, [wire_chat(10, [ANN, BOB])])


def test_connect_sends_authenticate_then_loads_state(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)

    [auth] = client.sent(events.AUTHENTICATE)
    assert auth["userInfo"]["id"] == "1"
    assert auth["token"]

    authenticate(client)

    assert connection.enabled
    assert [name for name, _ in client.emitted][1:] == [events.GET_ALL_USER_STATUSES, events.GET_MY_CHATS]
    assert connection.store.has_chat(10)


def test_gives_up_after_five_attempts(alerts):
    client = FakeSocketClient(failures=99)
    delays = []
    connection = ChatConnection(ChatStore(), "http://chat", client=client, on_alert=alerts.append, sleep=delays.append)

    assert connection.start(make_token("1"), USER_INFO) is False

    assert client.connect_calls == 5
    assert delays == [1.0] * 4
    assert connection.disabled_reason is not None
    assert not connection.enabled
    assert len(alerts) == 1


def test_recovers_within_the_retry_budget(alerts):
    client = FakeSocketClient(failures=4)
    connection = connect(client, alerts)

    assert client.connect_calls == 5
    assert connection.disabled_reason is None
    assert alerts == []


def test_unexpected_disconnect_reconnects_and_reauthenticates(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)

    client.handlers["disconnect"]("transport close")

    assert client.connect_calls == 2
    assert len(client.sent(events.AUTHENTICATE)) == 2
    assert not connection.enabled


def test_stop_does_not_reconnect(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)

    connection.stop()

    assert client.connect_calls == 1


def test_authentication_error_disables_chat(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)

    client.fire(events.AUTHENTICATION_ERROR, "jwt expired")

    assert not connection.enabled
    assert "jwt expired" in alerts[0]
    client.handlers["disconnect"]("server disconnect")
    assert client.connect_calls == 1


def test_own_new_chat_is_selected_and_loaded(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)

    client.fire(events.CHAT_CREATED_SUCCESSFULLY, wire_chat(30, [ANN, BOB], name="Study"))

    assert connection.store.active_chat_id == 30
    assert client.sent(events.JOIN_CHAT) == [30]
    assert client.sent(events.GET_CHAT_MESSAGES) == [30]
    assert connection.store.visible_chats()[0].id == 30


def test_message_for_unknown_chat_requests_details(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)

    client.fire(events.NEW_MESSAGE, wire_message(1, 77, 1, BOB))
    assert client.sent(events.GET_CHAT_DETAILS) == [77]

    client.fire(events.CHAT_DETAILS, wire_chat(77, [ANN, BOB], name="Late"))
    assert connection.store.has_chat(77)
    assert client.sent(events.JOIN_CHAT) == [77]


def test_removed_from_chat_drops_it(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)
    connection.select_chat(10)

    client.fire(events.CHAT_UPDATED, wire_chat(10, [BOB, wire_user(3, "3", "Cat", "Kim")], name="Without Ann"))

    assert not connection.store.has_chat(10)
    assert connection.store.active_chat_id is None


def test_create_chat_requires_another_user(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)

    assert connection.create_chat([]) is False
    assert alerts == ["Please select at least one other user."]

    bob = DirectoryEntry(id="2", first_name="Bob", last_name="Ray")
    assert connection.create_chat([bob, bob], "  ") is True
    [request] = client.sent(events.CREATE_NEW_CHAT)
    assert sorted(p["id"] for p in request["participantsData"]) == ["1", "2"]
    assert request["groupName"] is None


def test_select_and_send(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)

    assert connection.send_message("hi") is False
    connection.select_chat(10)
    assert connection.send_message("   ") is False
    assert connection.send_message(" hi ") is True

    assert client.sent(events.SEND_MESSAGE) == [{"chatId": 10, "content": "hi"}]
    assert client.sent(events.GET_CHAT_DETAILS) == []


def test_server_error_is_surfaced(alerts):
    client = FakeSocketClient()
    connect(client, alerts)

    client.fire(events.ERROR, {"message": "Chat not found or you are not a participant."})

    assert alerts == ["Chat not found or you are not a participant."]


def test_disconnect_waits_for_a_fresh_chat_list(alerts):
    client = FakeSocketClient()
    connection = connect(client, alerts)
    authenticate(client)
    assert connection.store.chats_loaded is True

    client.handlers["disconnect"]("transport close")
    assert connection.store.chats_loaded is False

    client.fire(events.AUTHENTICATED, wire_identity(ANN))
    client.fire(events.MY_CHATS, [wire_chat(10, [ANN, BOB])])
    assert connection.store.chats_loaded is True
