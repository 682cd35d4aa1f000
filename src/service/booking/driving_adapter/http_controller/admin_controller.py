from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Cookie, Depends, Header, Response

from src.platform.config.di import Container
from src.platform.exception.exceptions import UnauthorizedError
from src.platform.logging.loguru_io import Logger
from src.service.booking.driving_adapter.http_controller.auth.admin_auth import (
    ADMIN_COOKIE_NAME,
    AdminJwtAuth,
)
from src.service.booking.driving_adapter.http_controller.schema.booking_schema import (
    AdminLoginRequest,
    MessageResponse,
)


# === API Router ===

router = APIRouter()


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith('bearer '):
        return authorization[7:].strip() or None
    return None


@inject
async def require_admin(
    admin_auth: AdminJwtAuth = Depends(Provide[Container.admin_auth]),
    token: Optional[str] = Cookie(None, alias=ADMIN_COOKIE_NAME),
    authorization: Optional[str] = Header(None),
) -> None:
    """Admin session from the cookie, or an Authorization: Bearer header for API clients."""
    if not admin_auth.is_admin(token or _bearer_token(authorization)):
        raise UnauthorizedError()


@router.post('/login', response_model=MessageResponse)
@Logger.io
@inject
async def login(
    response: Response,
    request: AdminLoginRequest,
    admin_auth: AdminJwtAuth = Depends(Provide[Container.admin_auth]),
) -> MessageResponse:
    admin_auth.verify_password(request.password.get_secret_value())

    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=admin_auth.create_jwt_token(),
        max_age=admin_auth.token_expire_minutes * 60,
        httponly=True,
        samesite='lax',
        secure=False,  # Set to True in production
    )
    return MessageResponse(message='Logged in')


@router.post('/logout', response_model=MessageResponse)
@Logger.io
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(key=ADMIN_COOKIE_NAME)
    return MessageResponse(message='Logged out')
