"""SUPAWATCH — Dashboard Output Models (Derived, never persisted)."""

from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from app.models.base import CamelModel


class ProjectStats(CamelModel):
    """User, request and size counters for a project.

    Trends are percentage change against a prior baseline. There is no
    historical store, so they stay at 0.
    """

    total_users: int = 0
    active_users: int = 0
    api_requests: int = 0
    database_size: str = "0 MB"
    users_trend: float = 0
    active_users_trend: float = 0
    requests_trend: float = 0


class ResourceUsage(CamelModel):
    """Utilisation percentages, each clamped to [0, 100]."""

    cpu: float = 0
    memory: float = 0
    disk: float = 0

    @field_validator("cpu", "memory", "disk", mode="before")
    @classmethod
    def _clamp(cls, value) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 0.0
        if value != value:  # NaN
            return 0.0
        return max(0.0, min(100.0, value))


class ActivityType(str, Enum):
    USER_SIGNUP = "user_signup"
    API_REQUEST = "api_request"
    DATABASE_QUERY = "database_query"
    ALERT = "alert"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActivityItem(CamelModel):
    id: str
    type: ActivityType
    message: str
    timestamp: str
    severity: Optional[Severity] = None


class DashboardSnapshot(CamelModel):
    """Composite result of one aggregation pass."""

    stats: ProjectStats = Field(default_factory=ProjectStats)
    usage: ResourceUsage = Field(default_factory=ResourceUsage)
    activity: List[ActivityItem] = []
