"""
Component wiring.

build_container() constructs every service from an explicit Settings
object. main.create_app() stores the result on app.state; routes reach it
through dependencies.get_container().
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from citizen_connect.core.settings import Settings
from citizen_connect.services.auth_service import AuthService
from citizen_connect.services.image_storage import ImageStorage
from citizen_connect.services.lifecycle_engine import LifecycleEngine
from citizen_connect.services.password_hasher import PasswordHasher
from citizen_connect.services.reset_notifier import LoggingResetNotifier, ResetNotifier
from citizen_connect.services.token_service import TokenService
from citizen_connect.stores import build_stores
from citizen_connect.stores.base import CredentialStore, RequestStore
from citizen_connect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    credential_store: CredentialStore
    request_store: RequestStore
    hasher: PasswordHasher
    token_service: TokenService
    auth_service: AuthService
    image_storage: ImageStorage
    lifecycle: LifecycleEngine


def build_container(
    settings: Settings,
    credential_store: Optional[CredentialStore] = None,
    request_store: Optional[RequestStore] = None,
    notifier: Optional[ResetNotifier] = None,
    clock: Clock = utc_now,
) -> ServiceContainer:
    """
    Build all components. Stores may be injected; otherwise they come from
    build_stores(settings). Assumes settings.validate_startup() has passed.
    """
    if credential_store is None or request_store is None:
        built_credentials, built_requests = build_stores(settings)
        credential_store = credential_store or built_credentials
        request_store = request_store or built_requests

    hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    token_service = TokenService(
        secret=settings.JWT_SECRET,
        credential_store=credential_store,
        hasher=hasher,
        algorithm=settings.JWT_ALGORITHM,
        session_ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
        reset_ttl=timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES),
        clock=clock,
    )
    auth_service = AuthService(
        credential_store=credential_store,
        hasher=hasher,
        token_service=token_service,
        notifier=notifier or LoggingResetNotifier(log_links=settings.DEBUG),
        password_min_length=settings.PASSWORD_MIN_LENGTH,
        frontend_url=settings.FRONTEND_URL,
    )
    image_storage = ImageStorage(
        upload_dir=settings.UPLOAD_DIR,
        url_prefix=settings.UPLOAD_URL_PREFIX,
        max_bytes=settings.MAX_UPLOAD_BYTES,
    )
    lifecycle = LifecycleEngine(
        request_store=request_store,
        image_storage=image_storage,
        owner_directory=credential_store,
        clock=clock,
    )

    return ServiceContainer(
        settings=settings,
        credential_store=credential_store,
        request_store=request_store,
        hasher=hasher,
        token_service=token_service,
        auth_service=auth_service,
        image_storage=image_storage,
        lifecycle=lifecycle,
    )
