"""Relay error taxonomy.

Every failure raised by a handler is a ``RelayError``; the session dispatcher
turns it into an ``error`` (or ``authentication_error``) event for the
originating connection only.
"""


class RelayError(Exception):
    code = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredential(RelayError):
    code = "invalid_credential"
    default_message = "Invalid authentication data"


class CredentialExpired(RelayError):
    code = "credential_expired"
    default_message = "jwt expired"


class NotAuthenticated(RelayError):
    code = "not_authenticated"
    default_message = "Not authenticated"


class NotFound(RelayError):
    code = "not_found"
    default_message = "Chat not found or you are not a participant."


class Forbidden(RelayError):
    code = "forbidden"
    default_message = "You are not authorized to edit this chat."


class ValidationFailed(RelayError):
    code = "validation_failed"
    default_message = "Invalid request payload"


class Internal(RelayError):
    code = "internal"
    default_message = "Internal server error"
