"""
Shared FastAPI dependencies: service singletons and authentication guards.

Tests swap any of the get_* providers through app.dependency_overrides.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from .config import settings
from .database import get_redis
from .exceptions import InvalidToken
from .schemas.auth import SessionClaims
from .services.credentials import CredentialStore
from .services.otp_service import OTPRegistry
from .services.session_service import SessionManager
from .services.store import KeyValueStore, MemoryStore, RedisStore
from .services.telemetry_service import TelemetryService
from .services.tokens import JWTTokenCodec, OpaqueTokenCodec, TokenCodec
from .utils.security import extract_bearer_token


@lru_cache()
def get_store() -> KeyValueStore:
    if settings.SESSION_BACKEND == "redis":
        return RedisStore(get_redis())
    return MemoryStore()


@lru_cache()
def get_credential_store() -> CredentialStore:
    return CredentialStore.from_settings(settings)


def build_token_codec(store: KeyValueStore) -> TokenCodec:
    if settings.TOKEN_STRATEGY == "jwt":
        return JWTTokenCodec(settings.SECRET_KEY, settings.ALGORITHM)
    return OpaqueTokenCodec(store)


@lru_cache()
def get_session_manager() -> SessionManager:
    return SessionManager(
        codec=build_token_codec(get_store()),
        credentials=get_credential_store(),
        expire_minutes=settings.SESSION_EXPIRE_MINUTES,
    )


@lru_cache()
def get_otp_registry() -> OTPRegistry:
    return OTPRegistry(
        get_store(),
        expire_minutes=settings.OTP_EXPIRE_MINUTES,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )


@lru_cache()
def get_telemetry() -> TelemetryService:
    return TelemetryService.from_settings(settings)


def get_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    return extract_bearer_token(authorization)


async def get_optional_claims(
    token: Optional[str] = Depends(get_token),
    sessions: SessionManager = Depends(get_session_manager)
) -> Optional[SessionClaims]:
    """None for anonymous callers; a present but bad token is still rejected"""
    if token is None:
        return None
    return sessions.validate(token)


async def get_current_claims(
    token: Optional[str] = Depends(get_token),
    sessions: SessionManager = Depends(get_session_manager)
) -> SessionClaims:
    if token is None:
        raise InvalidToken()
    return sessions.validate(token)


def require_role(role: str):
    """Dependency factory guarding a route with a single role"""
    def role_checker(current: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        return SessionManager.require_role(current, role)
    return role_checker
