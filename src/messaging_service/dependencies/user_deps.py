from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..logging_config import logger
from ..security import AuthError, UserTokenData, decode_user_token

# auto_error is off so a missing header yields 401 rather than 403
bearer_scheme = HTTPBearer(auto_error=False, description="User JWT issued by the auth service")


def get_current_user_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserTokenData:
    """
    A dependency that decodes and validates a JWT locally.
    It returns the token's payload if validation is successful.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or not credentials.credentials:
        raise credentials_exception

    try:
        return decode_user_token(credentials.credentials)
    except AuthError as e:
        logger.warning(f"Failed to validate user token: {e}")
        raise credentials_exception


def get_current_user_id(
    token_data: UserTokenData = Depends(get_current_user_token_data),
) -> UUID:
    """
    Routes that only need the user's ID can depend on this for simplicity.
    """
    return token_data.user_id
