"""SUPAWATCH — Secret Store Table."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class SecretRecord(SQLModel, table=True):
    """One encrypted blob per namespace key.

    ``ciphertext`` is a Fernet token; plaintext never touches the database.
    """

    __tablename__ = "secret_store"

    key: str = Field(primary_key=True, description="Namespace key")
    ciphertext: str = Field(description="Fernet token (urlsafe base64)")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
