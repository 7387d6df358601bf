"""
Tubely Authentication Module

Bearer token handling for the ingestion API. Tokens are HS256 JWTs issued
with the configured issuer; the ``sub`` claim carries the caller's user UUID.

- ``get_bearer_token`` extracts the raw token from an ``Authorization`` header
- ``validate_jwt`` verifies signature, expiry and issuer and returns the user id
- ``create_access_token`` mints a token (used by seeding scripts and tests)

Authentication failures are always reported as ``Unauthenticated`` (401).
The reason is logged but never returned to the client.

Usage:
    ```python
    from tubely.core.auth import get_bearer_token, validate_jwt

    token = get_bearer_token(request.headers.get("Authorization"))
    user_id = validate_jwt(token, settings)
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

from tubely.config import Settings
from tubely.core.errors import Unauthenticated


# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Token Constants
# =============================================================================

JWT_ALGORITHM = "HS256"

BEARER_PREFIX = "bearer"


# =============================================================================
# Header Parsing
# =============================================================================


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Args:
        authorization: Raw header value, or None when the header is absent.

    Returns:
        str: The bearer token.

    Raises:
        Unauthenticated: If the header is missing or not a bearer credential.
    """
    if not authorization:
        logger.debug("Authorization header missing")
        raise Unauthenticated

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_PREFIX or not token:
        logger.debug("Authorization header is not a bearer credential")
        raise Unauthenticated

    return token


# =============================================================================
# JWT Functions
# =============================================================================


def create_access_token(user_id: UUID, settings: Settings) -> str:
    """
    Create an HS256 access token for the given user.

    Token claims:
    - sub: User ID (string UUID)
    - iss: Configured issuer
    - iat: Issued at timestamp
    - exp: Expiration timestamp (``jwt_expiration_hours`` from now)

    Args:
        user_id: The user's unique identifier.
        settings: Settings instance containing jwt_secret and jwt_issuer.

    Returns:
        str: The encoded JWT token string.
    """
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": expire,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)

    logger.info("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def validate_jwt(token: str, settings: Settings) -> UUID:
    """
    Validate a bearer token and return the authenticated user's id.

    Args:
        token: The JWT token string to validate.
        settings: Settings instance containing the secret and expected issuer.

    Returns:
        UUID: The user id carried in the ``sub`` claim.

    Raises:
        Unauthenticated: If the token is malformed, expired, signed with the
            wrong key, issued by someone else, or has a non-UUID subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError as e:
        logger.warning("Bearer token has expired")
        raise Unauthenticated from e
    except JWTError as e:
        logger.warning("Bearer token validation failed: %s", str(e))
        raise Unauthenticated from e

    subject = payload.get("sub")
    if not isinstance(subject, str):
        logger.warning("Bearer token has no subject claim")
        raise Unauthenticated

    try:
        user_id = UUID(subject)
    except ValueError as e:
        logger.warning("Bearer token subject is not a UUID: %s", subject)
        raise Unauthenticated from e

    logger.debug("Bearer token validated for user: %s", user_id)
    return user_id
