"""
Credential Store - admin accounts derived from settings
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from ..schemas.auth import ADMIN_ROLE
from ..utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminAccount:
    username: str
    password_hash: Optional[str]
    role: str = ADMIN_ROLE


class CredentialStore:

    def __init__(self, accounts: Iterable[AdminAccount] = ()):
        self._accounts: Dict[str, AdminAccount] = {a.username: a for a in accounts}

    @classmethod
    def from_settings(cls, settings) -> "CredentialStore":
        """
        Build the store from ADMIN_USERNAME plus ADMIN_PASSWORD_HASH (preferred)
        or ADMIN_PASSWORD. Without either, the admin cannot log in by password.
        """
        password_hash = settings.ADMIN_PASSWORD_HASH
        if not password_hash and settings.ADMIN_PASSWORD:
            password_hash = get_password_hash(settings.ADMIN_PASSWORD)
        if not password_hash:
            logger.warning("No admin password configured; password login is disabled")
        return cls([AdminAccount(username=settings.ADMIN_USERNAME, password_hash=password_hash)])

    def get(self, username: str) -> Optional[AdminAccount]:
        return self._accounts.get(username)

    def authenticate(self, username: str, password: str) -> Optional[AdminAccount]:
        account = self._accounts.get(username)
        if account is None or not account.password_hash:
            return None
        if not verify_password(password, account.password_hash):
            return None
        return account
