"""
SubText Backend — Auth Routes
===============================

POST /api/auth/signup       create account (201)
POST /api/auth/login        password login → user + session
POST /api/auth/logout       revoke the bearer token's session
POST /api/auth/refresh      exchange a refresh token for a new session
GET  /api/auth/check-user   does an account exist for ?email=
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.container import ServiceContainer
from app.dependencies import get_bearer_token, get_container
from app.schemas.auth import (
    CheckUserResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    SessionOut,
    SignupRequest,
    SignupResponse,
    UserOut,
)
from app.schemas.common import ErrorResponse, MessageResponse
from app.services.auth_service import AuthSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _session_out(session: AuthSession) -> SessionOut:
    return SessionOut(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
    )


@router.post(
    "/signup",
    status_code=201,
    response_model=SignupResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def signup(
    body: SignupRequest,
    container: ServiceContainer = Depends(get_container),
) -> SignupResponse:
    user = await container.auth.signup(body.email, body.password, body.full_name)
    return SignupResponse(
        message="User created successfully",
        user=UserOut.model_validate(user),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def login(
    body: LoginRequest,
    container: ServiceContainer = Depends(get_container),
) -> LoginResponse:
    user, session = await container.auth.login(body.email, body.password)
    return LoginResponse(
        message="Login successful",
        user=UserOut.model_validate(user),
        session=_session_out(session),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse}},
)
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.auth.logout(token)
    return MessageResponse(message="Logout successful")


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def refresh(
    body: RefreshRequest,
    container: ServiceContainer = Depends(get_container),
) -> RefreshResponse:
    session = await container.auth.refresh(body.refresh_token)
    return RefreshResponse(message="Token refreshed successfully", session=_session_out(session))


@router.get(
    "/check-user",
    response_model=CheckUserResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}},
)
async def check_user(
    email: Optional[str] = Query(default=None),
    container: ServiceContainer = Depends(get_container),
) -> CheckUserResponse:
    user = await container.auth.check_user(email)
    if user is None:
        return CheckUserResponse(exists=False, message="User not found")
    return CheckUserResponse(exists=True, user=UserOut.model_validate(user))
