from campus_chat.client.main import ChatClient

from .factories import wire_chat, wire_identity, wire_message, wire_user

ANN = wire_user(1, "1", "Ann", "Lee")
BOB = wire_user(2, "2", "Bob", "Ray")


def make_client():
    client = ChatClient("http://chat", "http://roster")
    client.store.set_identity(wire_identity(ANN))
    client.store.replace_chats([wire_chat(10, [ANN, BOB])])
    client.store.open_chat(10)
    return client


def test_open_chat_reports_loading_until_history_arrives(capsys):
    client = make_client()

    client.show_active_chat()
    out = capsys.readouterr().out
    assert "Loading messages" in out
    assert "No messages yet." not in out

    client.store.receive_history(10, [])
    client.show_active_chat()
    assert "No messages yet." in capsys.readouterr().out


def test_loaded_chat_prints_messages(capsys):
    client = make_client()
    client.store.receive_history(10, [wire_message(1, 10, 1, BOB, "hello there")])

    client.show_active_chat()

    out = capsys.readouterr().out
    assert "=== Bob Ray ===" in out
    assert "Bob Ray: hello there" in out
