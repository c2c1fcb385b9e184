"""Socket.IO event names shared by the relay and its clients."""

# client -> server
AUTHENTICATE = "authenticate"
GET_ALL_USER_STATUSES = "getAllUserStatuses"
GET_MY_CHATS = "getMyChats"
CREATE_NEW_CHAT = "createNewChat"
JOIN_CHAT = "joinChat"
GET_CHAT_MESSAGES = "getChatMessages"
SEND_MESSAGE = "sendMessage"
UPDATE_CHAT = "updateChat"
GET_CHAT_DETAILS = "getChatDetails"

# server -> client
AUTHENTICATED = "authenticated"
AUTHENTICATION_ERROR = "authentication_error"
ALL_USER_STATUSES = "allUserStatuses"
USER_STATUS_CHANGED = "userStatusChanged"
MY_CHATS = "myChats"
CHAT_CREATED_SUCCESSFULLY = "chatCreatedSuccessfully"
CHAT_ALREADY_EXISTS = "chatAlreadyExists"
NEW_CHAT_CREATED = "newChatCreated"
CHAT_UPDATED = "chatUpdated"
CHAT_DETAILS = "chatDetails"
CHAT_MESSAGES = "chatMessages"
NEW_MESSAGE = "newMessage"
NOTIFICATION = "notification"
ERROR = "error"

CHAT_OPERATIONS = (
    GET_ALL_USER_STATUSES,
    GET_MY_CHATS,
    CREATE_NEW_CHAT,
    JOIN_CHAT,
    GET_CHAT_MESSAGES,
    SEND_MESSAGE,
    UPDATE_CHAT,
    GET_CHAT_DETAILS,
)
