"""Client configuration values."""
import os

SERVER_URL = os.getenv("CAMPUS_CHAT_SERVER_URL", "http://localhost:3000")
ROSTER_URL = os.getenv("CAMPUS_CHAT_ROSTER_URL", "http://localhost:8888")

# Connection is given up after this many attempts, one fixed delay apart.
RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY = 1.0

NOTIFICATION_LIMIT = 10

# How long a deep-linked chat waits for the chat list after navigation.
PENDING_CHAT_TIMEOUT = 5.0
PENDING_CHAT_POLL_INTERVAL = 0.1

DEFAULT_AVATAR = "assets/user.png"
GROUP_AVATAR = "assets/group-chat.png"
UNNAMED_GROUP = "Unnamed Group"
