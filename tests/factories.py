"""Tokens and wire-shaped payloads shared by the tests."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt

EPOCH = datetime(2024, 1, 1, 12, 0, 0)

SECRET = "test-secret"


def make_token(sub: str, expires_in: int = 3600, secret: str = SECRET) -> str:
    payload = {"sub": str(sub), "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in)}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_payload(external_id: str, first_name: str, last_name: str, token: Optional[str] = None) -> Dict[str, Any]:
    return {
        "token": token if token is not None else make_token(external_id),
        "userInfo": {"id": external_id, "first_name": first_name, "last_name": last_name, "avatar": None},
    }


def ts(seconds: float) -> str:
    return (EPOCH + timedelta(seconds=seconds)).isoformat()


def wire_user(user_id: int, external_id: str, first_name: str = "Ann", last_name: str = "Lee", online: bool = False) -> Dict[str, Any]:
    return {
        "_id": user_id,
        "mysql_user_id": external_id,
        "username": f"{first_name}_{last_name}",
        "first_name": first_name,
        "last_name": last_name,
        "avatar": None,
        "online": online,
        "lastSeen": ts(0),
    }


def wire_message(message_id: int, chat_id: int, at: float, sender: Dict[str, Any], content: str = "hello") -> Dict[str, Any]:
    return {
        "_id": message_id,
        "chatId": chat_id,
        "senderId": sender,
        "senderName": sender["username"],
        "senderAvatar": sender["avatar"],
        "content": content,
        "timestamp": ts(at),
    }


def wire_chat(
    chat_id: int,
    participants: List[Dict[str, Any]],
    name: Optional[str] = None,
    updated: float = 0,
    created: float = 0,
    last_message: Optional[Dict[str, Any]] = None,
    created_by: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "_id": chat_id,
        "name": name,
        "participants": participants,
        "isGroupChat": len(participants) > 2 or bool(name),
        "lastMessage": last_message,
        "createdBy": created_by or participants[0],
        "createdAt": ts(created),
        "updatedAt": ts(updated),
    }


def wire_identity(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "userId": user["_id"],
        "mysqlId": user["mysql_user_id"],
        "username": user["username"],
        "first_name": user["first_name"],
        "last_name": user["last_name"],
        "avatar": user["avatar"],
    }
