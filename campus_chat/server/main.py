"""ASGI entrypoint: the Socket.IO relay in front of a small FastAPI app."""
import socketio
import uvicorn
from fastapi import FastAPI

from .config import CORS_ORIGINS, HOST, PORT
from .database import Base, engine
from .logging_config import configure_logging
from .relay import Relay

logger = configure_logging()

# Create tables
Base.metadata.create_all(bind=engine)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=CORS_ORIGINS,
    logger=False,
    engineio_logger=False,
)
relay = Relay(sio).register()

app = FastAPI(title="Campus Chat Relay", version="1.0.0")


@app.get("/")
def root():
    return {"status": "ok", "sessions": len(relay.sessions)}


asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


def main() -> None:
    logger.info("RELAY_START host=%s port=%s", HOST, PORT)
    uvicorn.run("campus_chat.server.main:asgi_app", host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    main()
