"""
Session Tokens - HS256 JWTs issued by the session collaborator.

The token carries the subscriber identity (sub, email, name); this service
only decodes it into a Principal. Issuing is provided for operators and tests.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from structlog import get_logger

from paygate.exceptions import AuthenticationError
from paygate.models.domain import Principal

logger = get_logger(__name__)


class SessionTokenService:
    """Decode and issue subscriber session tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def issue(self, principal: Principal, expires_in: timedelta = timedelta(hours=1)) -> str:
        """Create a session token for a principal."""
        now = datetime.now(UTC)
        payload: dict[str, object] = {
            "sub": str(principal.subscriber_id),
            "email": principal.email,
            "iat": now,
            "exp": now + expires_in,
        }
        if principal.name:
            payload["name"] = principal.name
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Principal:
        """
        Decode a session token into a Principal.

        Raises:
            AuthenticationError: Expired, tampered, or missing required claims
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.warning("session_token_expired")
            raise AuthenticationError("session expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("session_token_invalid", error=str(exc))
            raise AuthenticationError("invalid session token") from exc

        try:
            subscriber_id = UUID(str(payload["sub"]))
        except ValueError as exc:
            raise AuthenticationError("invalid subject claim") from exc

        email = payload.get("email")
        if not email:
            raise AuthenticationError("missing email claim")

        name = payload.get("name")
        return Principal(
            subscriber_id=subscriber_id,
            email=str(email),
            name=str(name) if name else None,
        )
