"""Console client for the campus chat relay."""
import sys
from typing import Optional

import requests

from . import api, storage, views
from .connection import ChatConnection
from .navigation import DeepLinkNavigator
from .store import ChatState, ChatStore

STUDENTS_VIEW = "students"
MESSAGES_VIEW = "messages"


class ChatClient:
    """Interactive console front end over the chat store."""

    def __init__(self, server_url: str, roster_url: str):
        self.store = ChatStore()
        self.roster = api.RosterClient(roster_url)
        self.connection = ChatConnection(self.store, server_url, on_alert=self._alert)
        self.navigator = DeepLinkNavigator()
        self.view = STUDENTS_VIEW

    def _alert(self, message: str) -> None:
        print(f"\n[!] {message}")

    def login(self) -> bool:
        token = storage.get_token()
        user = storage.get_user()
        if not token or not user:
            print("=== Sign in ===")
            token = input("Access token: ").strip()
            user = {
                "id": input("User id: ").strip(),
                "first_name": input("First name: ").strip(),
                "last_name": input("Last name: ").strip(),
                "avatar": None,
            }
            storage.store_auth(token, user)
        return self.connection.start(token, user)

    def logout(self) -> None:
        self.connection.stop()
        storage.clear_auth()
        print("Logged out.")

    # -- views ------------------------------------------------------------

    def go_to_messages(self) -> None:
        self.view = MESSAGES_VIEW
        self.navigator.consume_pending(lambda: self.store.chats_loaded, self.open_chat)

    def list_chats(self) -> None:
        with self.store.lock:
            items = views.chat_list(self.store)
        if not items:
            print("No chats yet.")
        for item in items:
            marker = "*" if item.active else " "
            status = "" if item.online is None else (" (online)" if item.online else " (offline)")
            print(f"{marker} {item.chat_id}: {item.title}{status} - {item.preview}")

    def open_chat(self, chat_id: int) -> None:
        self.connection.select_chat(chat_id)

    def show_active_chat(self) -> None:
        with self.store.lock:
            chat = self.store.chats.get(self.store.active_chat_id)
            title = views.chat_title(self.store, chat) if chat else "(loading)"
            roster = views.active_roster(self.store)
            lines = views.message_lines(self.store)
            loading = self.store.active_state() is not ChatState.READY
        print(f"=== {title} ===")
        names = ", ".join(f"{r.name}{' *' if r.online else ''}" for r in roster) or "Just you"
        print(f"Participants: {names}")
        for line in lines:
            print(f"[{line.time}] {line.sender}: {line.content}")
        if loading:
            print("Loading messages... press [r] to refresh.")
        elif not lines:
            print("No messages yet.")

    def list_users(self, search: str = "") -> None:
        try:
            self.store.set_directory(self.roster.list_students())
        except (requests.RequestException, api.RosterError) as exc:
            print(f"Could not fetch users: {exc}")
            return
        with self.store.lock:
            rows = views.directory(self.store, search)
        for row in rows:
            status = "online" if row.online else "offline"
            print(f"- {row.external_id}: {row.name} [{row.group_name}] {status}")
        if not rows:
            print("No other users available")

    def new_chat(self) -> None:
        self.list_users()
        raw = input("Participant ids (comma separated): ").strip()
        wanted = {part.strip() for part in raw.split(",") if part.strip()}
        selected = [entry for entry in self.store.directory if entry.id in wanted]
        name = input("Group name (optional): ").strip() or None
        self.connection.create_chat(selected, name)

    def edit_chat(self) -> None:
        chat_id = self.store.active_chat_id
        if chat_id is None or not views.can_edit(self.store, chat_id):
            print("Only the chat creator can edit this chat.")
            return
        name = input("New name (blank keeps current): ").strip() or None
        raw = input("Participant ids (blank keeps current): ").strip()
        participants = [part.strip() for part in raw.split(",") if part.strip()]
        self.connection.update_chat(chat_id, name, participants)

    def show_notifications(self) -> Optional[int]:
        with self.store.lock:
            notifications = list(self.store.notifications)
        for index, notification in enumerate(notifications, start=1):
            message = notification.message
            print(f"{index}. [{notification.chat_name}] {message.sender.display_name}: {message.content}")
        if not notifications:
            print("No notifications.")
            return None
        choice = input("Open notification # (blank to skip): ").strip()
        if not choice.isdigit() or not 1 <= int(choice) <= len(notifications):
            return None
        target = notifications[int(choice) - 1]
        self.navigator.open_notification(
            target,
            on_messages_view=self.view == MESSAGES_VIEW,
            select=self.open_chat,
            navigate=self.go_to_messages,
        )
        return target.chat_id


def chat_loop(client: ChatClient) -> None:
    while client.connection.disabled_reason is None:
        if client.view == STUDENTS_VIEW:
            print("\nStudents: [u]sers, [n]otifications, [m]essages, [o]logout")
        else:
            print("\nMessages: [l]ist, [c]hat, [s]end, [r]efresh, [n]ew, [e]dit, [b]ell, [u]sers, [o]logout")
        cmd = input("> ").strip().lower()
        if cmd == "o":
            client.logout()
            return
        if cmd == "u":
            client.list_users(input("Search (optional): ").strip())
        if cmd == "b" or (cmd == "n" and client.view == STUDENTS_VIEW):
            client.show_notifications()
            continue
        if cmd == "m":
            client.go_to_messages()
        if client.view != MESSAGES_VIEW:
            continue
        if cmd == "l":
            client.list_chats()
        if cmd == "c":
            raw = input("Chat id: ").strip()
            if raw.isdigit():
                client.open_chat(int(raw))
                client.show_active_chat()
        if cmd == "s":
            if not client.connection.send_message(input("Message: ")):
                print("Open a chat and type a message first.")
        if cmd == "r":
            client.show_active_chat()
        if cmd == "n":
            client.new_chat()
        if cmd == "e":
            client.edit_chat()


def main():
    print("Campus Chat Client")
    server_url = input("Chat server URL (e.g. http://127.0.0.1:3000): ").strip() or "http://127.0.0.1:3000"
    roster_url = input("Roster URL (e.g. http://127.0.0.1:8888): ").strip() or "http://127.0.0.1:8888"
    client = ChatClient(server_url, roster_url)

    while True:
        print("\nMenu: [l]ogin, [q]uit")
        choice = input("> ").strip().lower()
        if choice == "q":
            sys.exit(0)
        if choice == "l" and client.login():
            chat_loop(client)


if __name__ == "__main__":
    main()
