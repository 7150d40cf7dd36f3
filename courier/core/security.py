"""
Security utilities for JWT token management and actor resolution.

This module provides:
- JWT access token creation and validation
- The explicit actor context passed to every service operation
- Role checks shared by the API dependencies and the services

Sign-up and login belong to the external identity provider; this service only
verifies the bearer tokens it issues (or that tests mint with
``create_access_token``).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from jose import JWTError, jwt

from courier.core.config import get_settings
from courier.core.logging import get_logger

logger = get_logger(__name__)


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


class ActorRole(str, Enum):
    """Roles an authenticated user may hold."""

    CUSTOMER = "customer"
    PARTNER = "partner"
    BOTH = "both"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "ActorRole":
        try:
            return cls(value.lower())
        except ValueError as e:
            valid = ", ".join(r.value for r in cls)
            raise ValueError(f"Invalid role '{value}'. Valid roles: {valid}") from e


@dataclass(frozen=True)
class ActorContext:
    """The authenticated user on whose behalf an operation runs."""

    user_id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role in (ActorRole.CUSTOMER, ActorRole.BOTH, ActorRole.ADMIN)

    @property
    def is_partner(self) -> bool:
        return self.role in (ActorRole.PARTNER, ActorRole.BOTH, ActorRole.ADMIN)

    def has_role(self, *roles: ActorRole) -> bool:
        """
        Check the actor against a set of allowed roles.

        ``both`` satisfies customer and partner checks and ``admin``
        satisfies every check.
        """
        if self.role == ActorRole.ADMIN or self.role in roles:
            return True
        if self.role == ActorRole.BOTH:
            return bool({ActorRole.CUSTOMER, ActorRole.PARTNER} & set(roles))
        return False


def create_access_token(
    user_id: UUID,
    role: ActorRole,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token with expiration.

    Args:
        user_id: Subject of the token
        role: Role claim
        expires_delta: Optional custom expiration time
        extra_claims: Additional claims to embed

    Returns:
        Encoded JWT token string

    Raises:
        TokenError: If token creation fails

    Example:
        >>> token = create_access_token(uuid4(), ActorRole.CUSTOMER)
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    to_encode: Dict[str, Any] = dict(extra_claims or {})
    to_encode.update(
        {
            "sub": str(user_id),
            "role": ActorRole(role).value,
            "exp": expire,
            "iat": now,
            "type": "access",
        }
    )

    try:
        encoded_jwt = jwt.encode(
            to_encode,
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
    except JWTError as e:
        logger.error(
            "Failed to create access token",
            error=str(e),
            error_type=type(e).__name__,
            user_id=str(user_id),
        )
        raise TokenError(
            "Failed to create access token",
            code="TOKEN_CREATE_FAILED",
            original_error=str(e),
        ) from e

    logger.debug(
        "Access token created",
        user_id=str(user_id),
        role=ActorRole(role).value,
        expires_at=expire.isoformat(),
    )
    return encoded_jwt


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        TokenError: If token is invalid, expired, or malformed
    """
    if not token:
        logger.warning("Attempted to decode empty token")
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        logger.warning("Token has expired", error=str(e))
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError(
            "Invalid token",
            code="TOKEN_INVALID",
            original_error=str(e),
        ) from e

    return payload


def actor_from_token(token: str) -> ActorContext:
    """
    Resolve an access token into an actor context.

    Raises:
        TokenError: If the token is invalid or carries malformed claims
    """
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise TokenError("Token is not an access token", code="TOKEN_TYPE_INVALID")

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not role:
        raise TokenError("Token missing required claims", code="TOKEN_CLAIMS_MISSING")

    try:
        return ActorContext(user_id=UUID(subject), role=ActorRole.from_string(role))
    except ValueError as e:
        raise TokenError(
            "Token carries malformed claims",
            code="TOKEN_CLAIMS_INVALID",
            original_error=str(e),
        ) from e
