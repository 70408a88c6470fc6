import base64
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import LargeBinary
from sqlalchemy.types import TypeDecorator

from app.core.settings import settings

_DEV_KDF_SALT = "origination-fernet-dev-salt"


def _kdf_salt(secret: str) -> bytes:
    configured = (settings.fernet_kdf_salt or "").strip()
    if configured:
        return configured.encode("utf-8")
    # development only; startup refuses production without FERNET_KDF_SALT
    return f"{_DEV_KDF_SALT}:{secret[:16]}".encode("utf-8")


def derive_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_kdf_salt(secret),
        iterations=max(100_000, settings.fernet_kdf_iterations),
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


@lru_cache(maxsize=8)
def _get_fernet(secret: str) -> Fernet:
    return Fernet(derive_key(secret))


class EncryptedString(TypeDecorator):
    """Fernet-encrypted text column used for identity numbers such as Aadhaar."""

    impl = LargeBinary
    cache_ok = True

    def __init__(self, *, secret: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._secret = secret

    @property
    def _fernet(self) -> Fernet:
        return _get_fernet(self._secret or settings.field_encryption_key or settings.secret_key)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self._fernet.encrypt(str(value).encode("utf-8"))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return self._fernet.decrypt(bytes(value)).decode("utf-8")
        except InvalidToken as exc:  # pragma: no cover - indicates a rotated key or corrupted data
            raise ValueError("Unable to decrypt value") from exc


__all__ = ["EncryptedString", "derive_key"]
