from campus_chat.client import views
from campus_chat.client.models import DirectoryEntry
from campus_chat.client.store import ChatStore

from .factories import wire_chat, wire_identity, wire_message, wire_user

ANN = wire_user(1, "1", "Ann", "Lee")
BOB = wire_user(2, "2", "Bob", "Ray", online=True)
CAT = wire_user(3, "3", "Cat", "Kim")


def make_store(chats):
    store = ChatStore()
    store.set_identity(wire_identity(ANN))
    store.replace_chats(chats)
    return store


def test_chat_list_is_ordered_by_last_activity():
    store = make_store([
        wire_chat(1, [ANN, BOB], updated=10),
        wire_chat(2, [ANN, CAT], updated=5, last_message=wire_message(9, 2, 30, CAT)),
        wire_chat(3, [ANN, BOB, CAT], updated=20),
    ])

    assert [c.id for c in store.visible_chats()] == [2, 3, 1]
    assert store.chats_loaded is True


def test_new_or_updated_chat_moves_to_top_and_keeps_selection():
    store = make_store([wire_chat(1, [ANN, BOB], updated=10), wire_chat(2, [ANN, CAT], updated=5)])
    store.open_chat(1)

    store.upsert_chat(wire_chat(2, [ANN, CAT], name="Renamed", updated=40))
    store.upsert_chat(wire_chat(4, [ANN, BOB, CAT], updated=50))

    items = views.chat_list(store)
    assert [i.chat_id for i in items] == [4, 2, 1]
    assert [i.active for i in items] == [False, False, True]
    assert items[1].title == "Renamed"


def test_dropping_the_active_chat_clears_selection():
    store = make_store([wire_chat(1, [ANN, BOB])])
    store.open_chat(1)

    store.drop_chat(1)

    assert store.visible_chats() == []
    assert store.active_chat_id is None


def test_titles_fall_back_to_peer_or_placeholder():
    store = make_store([
        wire_chat(1, [ANN, BOB]),
        wire_chat(2, [ANN, BOB, CAT]),
        wire_chat(3, [ANN, BOB, CAT], name="Study"),
    ])

    titles = {i.chat_id: i.title for i in views.chat_list(store)}
    assert titles == {1: "Bob Ray", 2: "Unnamed Group", 3: "Study"}


def test_only_the_creator_may_edit():
    store = make_store([wire_chat(1, [ANN, BOB, CAT], created_by=ANN), wire_chat(2, [ANN, BOB, CAT], created_by=BOB)])

    assert views.can_edit(store, 1) is True
    assert views.can_edit(store, 2) is False
    assert views.can_edit(store, 99) is False


def test_directory_excludes_me_and_filters():
    store = make_store([])
    store.set_directory([
        DirectoryEntry(id="1", first_name="Ann", last_name="Lee", group_name="G1"),
        DirectoryEntry(id="2", first_name="Bob", last_name="Ray", group_name="G1"),
        DirectoryEntry(id="3", first_name="Cat", last_name="Kim", group_name="G2"),
    ])

    assert [r.external_id for r in views.directory(store)] == ["2", "3"]
    assert [r.external_id for r in views.directory(store, "kim")] == ["3"]
    assert [r.external_id for r in views.directory(store, "g1")] == ["2"]


def test_message_lines_mark_own_messages():
    store = make_store([wire_chat(1, [ANN, BOB])])
    store.open_chat(1)
    store.receive_history(1, [wire_message(1, 1, 1, ANN, "mine"), wire_message(2, 1, 2, BOB, "theirs")])

    lines = views.message_lines(store)

    assert [(l.sender, l.own) for l in lines] == [("You", True), ("Bob Ray", False)]
