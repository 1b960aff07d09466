"""SUPAWATCH — Error vocabulary shared across the core."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories. Only the first two ever reach a caller."""

    INVALID_URL_FORMAT = "InvalidUrlFormat"
    CREDENTIAL_REJECTED = "CredentialRejected"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    STORAGE_CORRUPT = "StorageCorrupt"
    NOT_FOUND = "NotFound"


class StorageCorruptError(Exception):
    """Raised when a stored blob cannot be decrypted or decoded."""

    kind = ErrorKind.STORAGE_CORRUPT

    def __init__(self, namespace: str, reason: str = ""):
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Stored value for {namespace!r} is unreadable: {reason}")
