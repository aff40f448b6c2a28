"""
Ebookshelf Backend: Auth Route Handlers
=========================================

What:  POST /auth/signup, POST /auth/login, PATCH /auth/change-password.
How:   Thin wrappers around AuthService. Bodies are optional at the HTTP
       level so that a missing field produces the service's own message
       ("Email and password are required.") instead of a generic one.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ebookshelf.dependencies import get_auth_service, get_current_user_id
from ebookshelf.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    TokenResponse,
)
from ebookshelf.schemas.common import ErrorResponse, MessageResponse
from ebookshelf.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=MessageResponse,
    responses={
        400: {"description": "Missing fields, bad email or short password", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def signup(
    payload: Optional[SignupRequest] = None,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    payload = payload or SignupRequest()
    await auth.signup(payload.email, payload.password)
    return MessageResponse(message="User registered successfully!")


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        400: {"description": "Missing fields", "model": ErrorResponse},
        401: {"description": "Invalid credentials", "model": ErrorResponse},
    },
    summary="Exchange credentials for a bearer token",
)
async def login(
    payload: Optional[LoginRequest] = None,
    auth: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    payload = payload or LoginRequest()
    return await auth.login(payload.email, payload.password)


@router.patch(
    "/change-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "Missing fields or password rule broken", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        404: {"description": "Account no longer exists", "model": ErrorResponse},
    },
    summary="Change the caller's password",
)
async def change_password(
    payload: Optional[ChangePasswordRequest] = None,
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    payload = payload or ChangePasswordRequest()
    await auth.change_password(user_id, payload.old_password, payload.new_password)
    return MessageResponse(message="Password changed successfully.")
