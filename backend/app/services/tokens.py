"""
Token codecs

OpaqueTokenCodec hands out random identifiers and keeps the claims in a
KeyValueStore. JWTTokenCodec puts the claims in an HS256-signed JWT, so no
server-side table is needed but a token cannot be revoked before it expires.
"""
import logging
import math
import secrets
from abc import ABC, abstractmethod
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError as ClaimsValidationError

from ..schemas.auth import SessionClaims
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class TokenCodec(ABC):

    @abstractmethod
    def encode(self, claims: SessionClaims) -> str:
        ...

    @abstractmethod
    def decode(self, token: str) -> Optional[SessionClaims]:
        """Claims for `token`, or None when it is unknown or malformed."""

    @abstractmethod
    def revoke(self, token: str) -> bool:
        ...


class OpaqueTokenCodec(TokenCodec):

    def __init__(self, store: KeyValueStore, nbytes: int = 32):
        self.store = store
        self.nbytes = nbytes

    @staticmethod
    def _key(token: str) -> str:
        return f"session:{token}"

    def encode(self, claims: SessionClaims) -> str:
        token = secrets.token_urlsafe(self.nbytes)
        self.store.set(self._key(token), claims.model_dump(mode="json"), claims.expires_at)
        return token

    def decode(self, token: str) -> Optional[SessionClaims]:
        data = self.store.get(self._key(token))
        if data is None:
            return None
        try:
            return SessionClaims.model_validate(data)
        except ClaimsValidationError:
            logger.warning("Dropping unreadable session record")
            self.store.delete(self._key(token))
            return None

    def revoke(self, token: str) -> bool:
        return self.store.delete(self._key(token))


class JWTTokenCodec(TokenCodec):

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def encode(self, claims: SessionClaims) -> str:
        # issued_at/expires_at keep the exact instants; iat/exp are whole seconds
        to_encode = claims.model_dump(mode="json", exclude={"subject"})
        to_encode.update({
            "sub": claims.subject,
            "iat": int(claims.issued_at.timestamp()),
            "exp": math.ceil(claims.expires_at.timestamp()),
        })
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[SessionClaims]:
        try:
            # Expiry is enforced by the session manager against its own clock
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None
        try:
            return SessionClaims.model_validate({**payload, "subject": payload.get("sub")})
        except ClaimsValidationError:
            return None

    def revoke(self, token: str) -> bool:
        return False
