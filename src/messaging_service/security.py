from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .logging_config import logger


class AuthError(Exception):
    pass


class UserTokenData(BaseModel):
    """
    Defines the structure of the JWT payload after validation.
    This schema is the contract between the auth service and this service.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: UUID = Field(..., alias="sub")
    username: Optional[str] = None
    roles: List[str] = Field(default_factory=list)


def parse_bearer(
    headers: Mapping[str, str], query_params: Optional[Mapping[str, Any]] = None
) -> Optional[str]:
    """Parse a Bearer token from HTTP headers or query params.

    - Looks for Authorization: Bearer <token>
    - Falls back to query param `token`
    """
    # headers are case-insensitive in ASGI frameworks but presented as a case-preserving mapping
    auth = headers.get("authorization") or headers.get("Authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    if query_params is not None:
        token = query_params.get("token")  # type: ignore[index]
        if isinstance(token, str) and token:
            return token
    return None


def decode_jwt(
    token: str,
    *,
    secret: str,
    algorithm: str,
    issuer: Optional[str] = None,
    audience: Optional[str] = None,
) -> dict:
    """Decode and verify a JWT with flexible verification flags.

    If issuer or audience are None/empty, their verification is disabled.
    """
    options = {
        "verify_signature": True,
        "verify_exp": True,
        "verify_iss": bool(issuer),
        "verify_aud": bool(audience),
    }
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            audience=audience if audience else None,
            issuer=issuer if issuer else None,
            options=options,
        )
    except JWTError as e:
        raise AuthError(str(e))


def decode_user_token(token: str) -> UserTokenData:
    """Validate a user token against the configured signing settings."""
    claims = decode_jwt(
        token,
        secret=settings.USER_JWT_SECRET_KEY,
        algorithm=settings.USER_JWT_ALGORITHM,
        issuer=settings.USER_JWT_ISSUER,
        audience=settings.USER_JWT_AUDIENCE,
    )
    try:
        return UserTokenData.model_validate(claims)
    except ValidationError as e:
        logger.debug("Token payload failed validation: %s", e)
        raise AuthError("Token payload is missing a valid subject") from e
