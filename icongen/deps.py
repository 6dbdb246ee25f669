"""Shared FastAPI dependencies."""

from functools import lru_cache

from fastapi import Depends, Request

from icongen.core.config import get_settings
from icongen.core.exceptions import UnauthorizedError
from icongen.core.logging import bind_user_id
from icongen.core.security import load_session_cookie
from icongen.generation.base import ImageGenerator, get_image_generator
from icongen.models.user import User
from icongen.services.checkout import StripeCheckout
from icongen.services.credits import CreditLedger
from icongen.services.icons import IconRecordStore, IconService
from icongen.storage.base import StorageBackend, get_storage

SESSION_COOKIE_NAME = "icongen_session"


async def get_current_user(request: Request) -> User:
    """Dependency: load session from cookie and return User."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    user = await User.get(user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    bind_user_id(str(user.id))
    return user


# Provider clients are built once per process
@lru_cache
def get_image_generator_client() -> ImageGenerator:
    return get_image_generator(get_settings())


@lru_cache
def get_storage_backend() -> StorageBackend:
    return get_storage(get_settings())


@lru_cache
def get_checkout_initiator() -> StripeCheckout | None:
    return StripeCheckout.from_settings(get_settings())


def get_icon_service(
    generator: ImageGenerator = Depends(get_image_generator_client),
    storage: StorageBackend = Depends(get_storage_backend),
) -> IconService:
    settings = get_settings()
    return IconService(
        generator=generator,
        storage=storage,
        ledger=CreditLedger(),
        records=IconRecordStore(),
        generation_timeout=settings.generation_timeout_seconds,
        upload_timeout=settings.upload_timeout_seconds,
        upload_attempts=settings.upload_attempts,
    )
