"""
FastAPI dependencies: component access and caller identity.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request

from citizen_connect.core.container import ServiceContainer
from citizen_connect.core.errors import Unauthorized
from citizen_connect.models.user import Identity, Role
from citizen_connect.services import access_control

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Access token required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Authorization header must be 'Bearer <token>'")
    return token.strip()


def get_identity(
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> Identity:
    """
    Resolve the caller from the bearer token.

    Raises:
        Unauthorized: header missing or malformed
        InvalidToken / ExpiredToken: token rejected (both 401)
    """
    token = _bearer_token(authorization)
    return container.token_service.validate_session(token)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    return access_control.require_role(identity, Role.ADMIN)
