"""
Authentication endpoints - email + password accounts with JWT sessions.
"""

from fastapi import APIRouter, Depends, status

from citizen_connect.core.container import ServiceContainer
from citizen_connect.core.dependencies import get_container, get_identity
from citizen_connect.models.base import envelope
from citizen_connect.models.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    Identity,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from citizen_connect.services.auth_service import user_payload

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, container: ServiceContainer = Depends(get_container)):
    """
    Register a citizen account.

    Returns:
        201 with the new user and a session token
    """
    user, token = container.auth_service.register(request.name, request.email, request.password)
    return envelope("User registered successfully", user=user_payload(user), token=token)


@router.post("/login")
def login(request: LoginRequest, container: ServiceContainer = Depends(get_container)):
    """
    Log in with email and password.

    The session token embeds the role held at this moment; a later role
    change is picked up at the next login.
    """
    user, token = container.auth_service.login(request.email, request.password)
    return envelope("Login successful", user=user_payload(user), token=token)


@router.get("/verify")
def verify(
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    """Validate the bearer token and return fresh user data."""
    user = container.auth_service.verify(identity)
    return envelope(user=user_payload(user))


@router.get("/profile")
def profile(
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    user = container.auth_service.profile(identity)
    return envelope(user=user_payload(user))


@router.post("/forgot-password")
def forgot_password(request: ForgotPasswordRequest, container: ServiceContainer = Depends(get_container)):
    """
    Start a password reset. Always 200 with the same message, whether or
    not the email is registered.
    """
    message = container.auth_service.forgot_password(request.email)
    return envelope(message)


@router.post("/reset-password/{token}")
def reset_password(
    token: str,
    request: ResetPasswordRequest,
    container: ServiceContainer = Depends(get_container),
):
    container.auth_service.reset_password(token, request.password)
    return envelope("Password reset successfully")


@router.post("/change-password")
def change_password(
    request: ChangePasswordRequest,
    identity: Identity = Depends(get_identity),
    container: ServiceContainer = Depends(get_container),
):
    container.auth_service.change_password(identity, request.current_password, request.new_password)
    return envelope("Password changed successfully")
