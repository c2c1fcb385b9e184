"""Bearer credential verification."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt

from .config import JWT_ALGORITHM, JWT_SECRET
from .errors import CredentialExpired, InvalidCredential
from .logging_config import configure_logging

logger = configure_logging()


@dataclass(frozen=True)
class Identity:
    external_id: str
    claims: Dict[str, Any] = field(default_factory=dict)


class IdentityVerifier:
    """Validates a JWT issued by the roster service and extracts ``sub``.

    Stateless: the only side effect of a failed check happens in the caller,
    which downgrades the claimed user's presence when the token has expired.
    """

    def __init__(self, secret: str = JWT_SECRET, algorithm: str = JWT_ALGORITHM):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, credential: Optional[str]) -> Identity:
        if not credential or not isinstance(credential, str):
            logger.warning("UNAUTHORIZED_ACCESS reason=missing_token")
            raise InvalidCredential("Invalid authentication data: token missing")
        try:
            claims = jwt.decode(credential, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            logger.warning("UNAUTHORIZED_ACCESS reason=expired_token")
            raise CredentialExpired("jwt expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("UNAUTHORIZED_ACCESS reason=invalid_token")
            raise InvalidCredential(str(exc) or "Invalid token") from exc

        subject = claims.get("sub")
        if subject in (None, ""):
            logger.warning("UNAUTHORIZED_ACCESS reason=missing_subject")
            raise InvalidCredential("Invalid token: Missing user ID")
        return Identity(external_id=str(subject), claims=claims)
