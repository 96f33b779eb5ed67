"""
Session Manager - issues and validates admin and villager bearer tokens

Token lifecycle: Issued -> Valid (now <= expires_at) -> Expired -> Evicted.
Expiry is detected lazily on validate; there is no refresh, an expired
session always needs a fresh login.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..exceptions import Forbidden, InvalidCredentials, InvalidToken
from ..schemas.auth import VILLAGER_ROLE, SessionClaims
from .credentials import AdminAccount, CredentialStore
from .tokens import TokenCodec

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VillagerIdentity:
    phone: str
    villager_id: Optional[int] = None
    name: Optional[str] = None
    village: Optional[str] = None
    panchayat: Optional[str] = None

    @classmethod
    def from_villager(cls, villager) -> "VillagerIdentity":
        return cls(
            phone=villager.phone,
            villager_id=villager.id,
            name=villager.name,
            village=villager.village,
            panchayat=villager.panchayat,
        )


class SessionManager:

    def __init__(
        self,
        codec: TokenCodec,
        credentials: CredentialStore,
        expire_minutes: int = 480,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.codec = codec
        self.credentials = credentials
        self.lifetime = timedelta(minutes=expire_minutes)
        self.clock = clock

    def _window(self):
        issued_at = self.clock()
        return issued_at, issued_at + self.lifetime

    def issue_admin_session(self, username: str, password: str) -> str:
        account = self.credentials.authenticate(username, password)
        if account is None:
            logger.warning(f"Failed admin login for username {username!r}")
            raise InvalidCredentials()
        return self.start_admin_session(account)

    def start_admin_session(self, account: AdminAccount) -> str:
        """Session for an account whose identity was already established."""
        issued_at, expires_at = self._window()
        token = self.codec.encode(SessionClaims(
            role=account.role,
            subject=account.username,
            issued_at=issued_at,
            expires_at=expires_at,
        ))
        logger.info(f"Admin session issued for {account.username}")
        return token

    def issue_villager_session(self, identity: VillagerIdentity) -> str:
        issued_at, expires_at = self._window()
        token = self.codec.encode(SessionClaims(
            role=VILLAGER_ROLE,
            subject=identity.phone,
            villager_id=identity.villager_id,
            name=identity.name,
            village=identity.village,
            panchayat=identity.panchayat,
            issued_at=issued_at,
            expires_at=expires_at,
        ))
        logger.info(f"Villager session issued for phone {identity.phone}")
        return token

    def validate(self, token: Optional[str]) -> SessionClaims:
        if not token:
            raise InvalidToken()
        claims = self.codec.decode(token)
        if claims is None:
            raise InvalidToken()
        if self.clock() > claims.expires_at:
            self.codec.revoke(token)
            raise InvalidToken("Session expired. Please login again.", code="token_expired")
        return claims

    def revoke(self, token: str) -> bool:
        return self.codec.revoke(token)

    @staticmethod
    def require_role(claims: SessionClaims, role: str) -> SessionClaims:
        if claims.role != role:
            raise Forbidden(f"Access denied. {role.capitalize()} only.")
        return claims

