"""Account API endpoints.

This module implements REST endpoints for accounts and sessions:
- POST /auth/register - Create account with starting credits
- POST /auth - Log in, sets the session cookie
- DELETE /auth, POST /auth/logout - Clear the session cookie
- GET /auth/user - Current user (password hash stripped) or null

The session token travels only in an HTTP-only cookie and is verified on every request.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from promptcanvas.api.dependencies import (
    NO_STORE_HEADERS,
    clear_session_cookie,
    get_authenticator,
    get_principal,
    get_settings,
    get_uow_factory,
    set_session_cookie,
)
from promptcanvas.core.config import Settings
from promptcanvas.models.user import User
from promptcanvas.services.auth import Authenticator, SessionClaims
from promptcanvas.services.exceptions import DuplicateEmail, InvalidCredentials

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response Models


class RegisterRequest(BaseModel):
    """Request model for account registration."""

    email: str = Field(
        ...,
        description="Account email (unique, case-sensitive)",
        min_length=3,
        max_length=255,
    )
    password: str = Field(
        ...,
        description="Plain text password",
        min_length=1,
        max_length=1024,
    )
    name: str = Field(
        ...,
        description="Display name",
        min_length=1,
        max_length=255,
    )


class LoginRequest(BaseModel):
    """Request model for login."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=1024)


class RegisteredUserDTO(BaseModel):
    id: UUID
    email: str
    name: str
    credits: int


class RegisterResponse(BaseModel):
    user: RegisteredUserDTO


class LoginUserDTO(BaseModel):
    id: UUID
    email: str
    name: str


class LoginResponse(BaseModel):
    user: LoginUserDTO


class SafeUserDTO(BaseModel):
    """User as shown to its owner. Never includes the password hash."""

    id: UUID
    email: str
    name: str
    image: str | None = None
    credits: int
    created_at: datetime = Field(..., serialization_alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "SafeUserDTO":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            image=user.image,
            credits=user.credits,
            created_at=user.created_at,
        )


class CurrentUserResponse(BaseModel):
    user: SafeUserDTO | None


class SuccessResponse(BaseModel):
    success: bool


# API Endpoints


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_200_OK)
async def register(
    request: RegisterRequest,
    uow_factory=Depends(get_uow_factory),
    authenticator: Authenticator = Depends(get_authenticator),
) -> RegisterResponse:
    """Create an account with the starting credit allowance.

    Raises:
        HTTPException 400: Email already registered
        HTTPException 500: Database error
    """
    try:
        async with await uow_factory() as uow:
            user = await authenticator.register(
                uow, email=request.email, password=request.password, name=request.name
            )
    except DuplicateEmail:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")
    except SQLAlchemyError as e:
        logger.error("auth.register_store_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Registration failed"
        )

    return RegisterResponse(
        user=RegisteredUserDTO(id=user.id, email=user.email, name=user.name, credits=user.credits)
    )


@router.post("", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    request: LoginRequest,
    response: Response,
    uow_factory=Depends(get_uow_factory),
    authenticator: Authenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    """Verify credentials and set the session cookie.

    Raises:
        HTTPException 401: Unknown email or wrong password
        HTTPException 500: Database error
    """
    try:
        async with await uow_factory() as uow:
            user, token = await authenticator.login(uow, request.email, request.password)
    except InvalidCredentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    except SQLAlchemyError as e:
        logger.error("auth.login_store_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication failed"
        )

    set_session_cookie(response, token, settings)
    return LoginResponse(user=LoginUserDTO(id=user.id, email=user.email, name=user.name))


@router.delete("", response_model=SuccessResponse)
async def logout(
    response: Response, settings: Settings = Depends(get_settings)
) -> SuccessResponse:
    """Clear the session cookie. Idempotent."""
    clear_session_cookie(response, settings)
    return SuccessResponse(success=True)


@router.post("/logout", response_model=SuccessResponse)
async def logout_post(
    response: Response, settings: Settings = Depends(get_settings)
) -> SuccessResponse:
    """Same as DELETE /auth, for clients that cannot send DELETE."""
    clear_session_cookie(response, settings)
    return SuccessResponse(success=True)


@router.get("/user", response_model=CurrentUserResponse)
async def current_user(
    principal: SessionClaims | None = Depends(get_principal),
    uow_factory=Depends(get_uow_factory),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Return the logged-in user with a live credit balance, or null.

    Responses carry no-store cache headers, including the 500 returned on
    database errors.
    """
    try:
        async with await uow_factory() as uow:
            user = await authenticator.resolve_current_user(uow, principal)
    except SQLAlchemyError as e:
        logger.error("auth.fetch_user_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Failed to fetch user"},
            headers=NO_STORE_HEADERS,
        )

    body = CurrentUserResponse(user=SafeUserDTO.from_user(user) if user else None)
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True), headers=NO_STORE_HEADERS
    )
