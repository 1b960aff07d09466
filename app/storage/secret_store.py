"""SUPAWATCH — Encrypted Key/Value Store.

Values are encrypted with Fernet (AES-128-CBC + HMAC-SHA256) before they are
written to the ``secret_store`` table, so credentials are never at rest in
plaintext. The Fernet key is derived from a passphrase via SHA-256.
"""

import base64
import hashlib
from datetime import datetime, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.core.errors import StorageCorruptError
from app.core.logging import get_logger
from app.models.store_models import SecretRecord

logger = get_logger("storage.secrets")

DEV_KEY = "supawatch-dev-key-change-in-production"


def derive_fernet_key(passphrase: str) -> bytes:
    """Turn an arbitrary passphrase into a urlsafe 32-byte Fernet key."""
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SecretStore:
    """Key/value persistence with at-rest confidentiality."""

    def __init__(self, engine: Engine, passphrase: str = ""):
        if not passphrase:
            logger.warning(
                "STORAGE_ENCRYPTION_KEY not set — using the development key. "
                "Set it before storing real credentials."
            )
            passphrase = DEV_KEY
        self._engine = engine
        self._fernet = Fernet(derive_fernet_key(passphrase))

    def get(self, key: str) -> Optional[str]:
        """Return the decrypted value, or None when the key is absent.

        Raises StorageCorruptError when the stored token cannot be decrypted.
        """
        with Session(self._engine) as session:
            record = session.get(SecretRecord, key)
            if record is None:
                return None
            ciphertext = record.ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except (InvalidToken, UnicodeDecodeError) as e:
            raise StorageCorruptError(key, type(e).__name__) from e

    def set(self, key: str, value: str) -> None:
        """Encrypt and write ``value`` under ``key``, replacing any old value."""
        token = self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")
        with Session(self._engine) as session:
            record = session.get(SecretRecord, key)
            if record is None:
                record = SecretRecord(key=key, ciphertext=token)
            else:
                record.ciphertext = token
                record.updated_at = datetime.now(timezone.utc)
            session.add(record)
            session.commit()

    def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""
        with Session(self._engine) as session:
            record = session.get(SecretRecord, key)
            if record is not None:
                session.delete(record)
                session.commit()
