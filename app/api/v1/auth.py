"""Sign-up, sign-in and sign-out. The signed JWT travels in an HttpOnly cookie."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import clear_auth_cookie, create_access_token, set_auth_cookie
from app.schemas.auth import (
    AuthResponse,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from app.services.auth import (
    AuthenticatedUser,
    CredentialService,
    DuplicateAccount,
    InvalidCredentials,
    Ok,
)
from app.services.user_store import SqlAlchemyUserStore

logger = logging.getLogger(__name__)
router = APIRouter()


def get_credential_service(
    db: Annotated[Session, Depends(get_db)],
) -> CredentialService:
    """Dependency: credential service bound to this request's DB session."""
    return CredentialService(SqlAlchemyUserStore(db))


def _issue_session(response: Response, user: AuthenticatedUser) -> None:
    set_auth_cookie(response, create_access_token(user))


@router.post("/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    service: Annotated[CredentialService, Depends(get_credential_service)],
) -> AuthResponse:
    """Create an account and sign it in."""
    result = await service.create_user(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
    )
    if isinstance(result, DuplicateAccount):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )
    if not isinstance(result, Ok):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    _issue_session(response, result.user)
    logger.info("User registered", extra={"user_id": result.user.id, "role": result.user.role})
    return AuthResponse(
        message="User registered",
        user=UserResponse.model_validate(result.user),
    )


@router.post("/sign-in", response_model=AuthResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    service: Annotated[CredentialService, Depends(get_credential_service)],
) -> AuthResponse:
    """Check email and password; on success set the auth cookie."""
    result = await service.authenticate(email=body.email, password=body.password)
    if isinstance(result, InvalidCredentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not isinstance(result, Ok):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    _issue_session(response, result.user)
    logger.info("User signed in", extra={"user_id": result.user.id})
    return AuthResponse(
        message="User signed in",
        user=UserResponse.model_validate(result.user),
    )


@router.post("/sign-out", response_model=MessageResponse)
def sign_out(response: Response) -> MessageResponse:
    """Clear the auth cookie."""
    clear_auth_cookie(response)
    return MessageResponse(message="User signed out")
