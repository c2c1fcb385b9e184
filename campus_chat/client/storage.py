"""Local client storage for credentials and navigation state."""
import json
from pathlib import Path
from typing import Any, Dict, Optional


STORAGE_FILE = Path.home() / ".campus_chat_client.json"


def load_state() -> Dict[str, Any]:
    if STORAGE_FILE.exists():
        with STORAGE_FILE.open("r", encoding="utf-8") as f:
            return json.load(f)
    return {}


def save_state(data: Dict[str, Any]) -> None:
    STORAGE_FILE.parent.mkdir(parents=True, exist_ok=True)
    with STORAGE_FILE.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def store_auth(token: str, user: Dict[str, Any]) -> None:
    state = load_state()
    state["token"] = token
    state["user"] = user
    save_state(state)


def clear_auth() -> None:
    state = load_state()
    for key in ["token", "user", "pending_chat_id"]:
        state.pop(key, None)
    save_state(state)


def get_token() -> Optional[str]:
    return load_state().get("token")


def get_user() -> Optional[Dict[str, Any]]:
    return load_state().get("user")


def store_pending_chat_id(chat_id: int) -> None:
    state = load_state()
    state["pending_chat_id"] = chat_id
    save_state(state)


def pop_pending_chat_id() -> Optional[int]:
    """Read and forget the deep-linked chat, so it is consumed at most once."""
    state = load_state()
    chat_id = state.pop("pending_chat_id", None)
    if chat_id is not None:
        save_state(state)
    return chat_id
