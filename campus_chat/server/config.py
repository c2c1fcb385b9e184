"""Server configuration values."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.getenv("CAMPUS_CHAT_DATABASE_URL", f"sqlite:///{BASE_DIR / 'campus_chat.db'}")

# Credentials are issued by the roster service; the relay only verifies them.
JWT_SECRET = os.getenv("CAMPUS_CHAT_JWT_SECRET", "supersecret")
JWT_ALGORITHM = os.getenv("CAMPUS_CHAT_JWT_ALGORITHM", "HS256")

CORS_ORIGINS = os.getenv(
    "CAMPUS_CHAT_CORS_ORIGINS",
    "http://localhost:63342,http://localhost:5500,http://127.0.0.1:5500",
).split(",")

HOST = os.getenv("CAMPUS_CHAT_HOST", "0.0.0.0")
PORT = int(os.getenv("CAMPUS_CHAT_PORT", "3000"))

DEFAULT_AVATAR = "assets/user.png"
UNNAMED_GROUP = "Unnamed Group"
