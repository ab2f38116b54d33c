"""
Dependency injection for FastAPI endpoints.
"""
from typing import Any, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.randomness import RandomSource, SecureRandomSource
from app.core.security import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=True)


def get_token_payload(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    """
    Decode the bearer token issued by the identity provider.

    Raises:
        HTTPException: If token is invalid or carries no subject
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None or not payload.get("sub"):
        raise credentials_exception
    if payload.get("type", "access") != "access":
        raise credentials_exception
    return payload


def get_current_user_id(payload: Dict[str, Any] = Depends(get_token_payload)) -> str:
    """
    Get the opaque id of the authenticated user.

    Returns:
        User id exactly as issued by the identity provider
    """
    return str(payload["sub"])


def require_admin(payload: Dict[str, Any] = Depends(get_token_payload)) -> str:
    """Ensure the caller carries the admin role; returns the admin's user id."""
    if payload.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return str(payload["sub"])


def get_random_source() -> RandomSource:
    """Randomness used for pool and choice shuffling; overridden in tests."""
    return SecureRandomSource()
