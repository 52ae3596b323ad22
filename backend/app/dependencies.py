"""
SubText Backend — FastAPI Dependencies
========================================

get_container:     the ServiceContainer attached to app.state at startup.
get_bearer_token:  raw token from "Authorization: Bearer <token>" (or None).
get_current_user:  verified AuthenticatedUser; 401 when missing or rejected.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.container import ServiceContainer
from app.exceptions import AuthenticationError
from app.services.auth_service import AuthenticatedUser

# auto_error=False: a missing header becomes our AuthenticationError (401)
# instead of FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    container: ServiceContainer = Depends(get_container),
) -> AuthenticatedUser:
    if token is None:
        raise AuthenticationError("No token provided")
    return await container.auth.verify_token(token)
