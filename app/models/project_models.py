"""SUPAWATCH — Project & Notification Rule Models (Persisted).

Both record types are stored as JSON arrays inside the encrypted secret store.
Secrets are held as ``SecretStr`` so they never leak through ``repr`` or logs;
they are only revealed when serialized with ``context={"reveal_secrets": True}``.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    Field,
    SecretStr,
    SerializationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from app.core.errors import ErrorKind
from app.models.base import CamelModel


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _reveal(value: Optional[SecretStr], info: SerializationInfo) -> Optional[str]:
    if value is None:
        return None
    if info.context and info.context.get("reveal_secrets"):
        return value.get_secret_value()
    return str(value)


# ─────────────────────────────────────────────
# PROJECT
# ─────────────────────────────────────────────


class ProjectStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


class Project(CamelModel):
    """A registered backend project and its privileged credentials."""

    id: str = Field(default_factory=new_id)
    name: str
    project_ref: str
    url: str
    credential: SecretStr = Field(alias="serviceRoleKey")
    secondary_token: Optional[SecretStr] = Field(
        default=None, alias="personalAccessToken"
    )
    status: ProjectStatus = ProjectStatus.HEALTHY
    created_at: datetime = Field(default_factory=utc_now)

    @field_serializer("credential", "secondary_token")
    def _serialize_secret(
        self, value: Optional[SecretStr], info: SerializationInfo
    ) -> Optional[str]:
        return _reveal(value, info)


# ─────────────────────────────────────────────
# NOTIFICATION RULE
# ─────────────────────────────────────────────


class TriggerType(str, Enum):
    NEW_USER = "new_user"
    NEW_ROW = "new_row"
    THRESHOLD = "threshold"


class ThresholdMetric(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"


class Threshold(CamelModel):
    metric: ThresholdMetric
    value: float


class NotificationRule(CamelModel):
    """A stored alerting rule.

    Rules are data only: nothing in the core evaluates them against metrics.
    ``project_id`` references ``Project.id`` but is not enforced.
    """

    id: str = Field(default_factory=new_id)
    project_id: str
    name: str
    enabled: bool = True
    trigger_type: TriggerType
    table_name: Optional[str] = None
    threshold: Optional[Threshold] = None
    message: str
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("name", "message")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("table_name")
    @classmethod
    def _strip_table(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None

    @model_validator(mode="after")
    def _check_trigger_payload(self) -> "NotificationRule":
        """Keep only the payload that matches the trigger type."""
        if self.trigger_type == TriggerType.NEW_ROW:
            if not self.table_name:
                raise ValueError("table_name is required for new_row rules")
            self.threshold = None
        elif self.trigger_type == TriggerType.THRESHOLD:
            if self.threshold is None:
                raise ValueError("threshold is required for threshold rules")
            self.table_name = None
        else:
            self.table_name = None
            self.threshold = None
        return self


# ─────────────────────────────────────────────
# CREDENTIAL VALIDATION RESULT
# ─────────────────────────────────────────────


class ValidationResult(CamelModel):
    """Outcome of a credential check."""

    valid: bool
    project_ref: Optional[str] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
