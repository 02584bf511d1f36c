"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Settings and Unit of Work access
- Session cookie handling and principal resolution
- Generation orchestrator wiring
"""

from typing import Callable

from fastapi import Depends, Request, Response

from promptcanvas.core.config import Settings
from promptcanvas.services.auth import Authenticator, SessionClaims
from promptcanvas.services.generation import GenerationOrchestrator
from promptcanvas.services.image_generation.gateway import GenerationGateway
from promptcanvas.uow import UnitOfWork

NO_STORE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()  # type: ignore[call-arg]  # Pydantic loads from env vars


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.users.get_by_email(email)
    """
    return request.app.state.uow_factory


def get_gateway(request: Request) -> GenerationGateway:
    """Get the generation gateway built during app lifespan."""
    return request.app.state.gateway


def get_authenticator(settings: Settings = Depends(get_settings)) -> Authenticator:
    return Authenticator(settings)


def get_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
    authenticator: Authenticator = Depends(get_authenticator),
) -> SessionClaims | None:
    """Verify the session cookie, if any.

    This is the only place the session cookie is read; everything downstream
    receives the verified claims explicitly.

    Returns:
        SessionClaims for a valid, unexpired token, None otherwise
    """
    token = request.cookies.get(settings.session_cookie_name)
    return authenticator.verify_token(token)


def get_orchestrator(
    uow_factory=Depends(get_uow_factory),
    gateway: GenerationGateway = Depends(get_gateway),
    authenticator: Authenticator = Depends(get_authenticator),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        uow_factory=uow_factory, gateway=gateway, authenticator=authenticator
    )


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the session token as an HTTP-only, same-site cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie. Safe to call without a session."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
