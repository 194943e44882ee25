"""Credential verification for realtime and HTTP clients."""

from dataclasses import dataclass
from typing import Optional, Protocol

import jwt

import config
from game.stats import UserAggregate
from utils.log import get_logger

logger = get_logger(__name__)


class AuthenticationError(Exception):
    """The presented credential was missing, invalid or unknown."""


class UserLookup(Protocol):
    async def get_user(self, user_id: str) -> Optional[UserAggregate]:
        ...


@dataclass(frozen=True)
class Identity:
    """Who a verified credential belongs to."""
    user_id: str
    username: str


class TokenVerifier:
    """Verifies signed tokens and resolves them to known users."""

    def __init__(
        self,
        users: UserLookup,
        secret: str = config.JWT_SECRET,
        algorithm: str = config.JWT_ALGORITHM
    ):
        self.users = users
        self.secret = secret
        self.algorithm = algorithm

    async def verify(self, token: Optional[str]) -> Identity:
        """
        Resolve a token to an identity.

        Raises:
            AuthenticationError: Token missing, bad signature/expired, or user unknown
        """
        if not token:
            raise AuthenticationError("Authentication token required")

        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as e:
            logger.warning("JWT decode failed", error=str(e), error_type=type(e).__name__)
            raise AuthenticationError("Invalid authentication token") from e

        user_id = claims.get('userId') or claims.get('sub')
        if not user_id:
            raise AuthenticationError("Invalid authentication token")

        user = await self.users.get_user(str(user_id))
        if user is None:
            raise AuthenticationError("User not found")

        return Identity(user_id=user.user_id, username=user.username)
