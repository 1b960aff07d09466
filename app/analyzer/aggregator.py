"""SUPAWATCH — Metrics Aggregator.

Builds a DashboardSnapshot for one project:
  primary (user counts, db size, recent signups) ─┐
  metrics endpoint (cpu / memory / disk)         ─┼─→ join → DashboardSnapshot
  management endpoint (api request count)        ─┘

Every source catches its own failures and falls back to its default, so an
outage of one source never blanks the others and ``snapshot`` never raises
on upstream errors. Cancellation of the calling task is not swallowed.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx

from app.config import settings
from app.connectors.supabase.client import SupabaseClient
from app.connectors.supabase.exposition import GaugeUsageExtractor, UsageExtractor
from app.connectors.supabase.management import ManagementClient
from app.core.logging import get_logger
from app.models.dashboard_models import (
    ActivityItem,
    ActivityType,
    DashboardSnapshot,
    ProjectStats,
    ResourceUsage,
    Severity,
)
from app.models.project_models import Project

logger = get_logger("analyzer.aggregator")

T = TypeVar("T")

DEFAULT_DATABASE_SIZE = "0 MB"


def format_database_size(size_bytes: Any) -> str:
    """Bytes → ``"12.3 MB"``. Anything unusable reads as ``"0 MB"``."""
    try:
        size = float(size_bytes)
    except (TypeError, ValueError):
        return DEFAULT_DATABASE_SIZE
    if size <= 0:
        return DEFAULT_DATABASE_SIZE
    return f"{size / (1024 * 1024):.1f} MB"


def signup_to_activity(row: dict, index: int) -> ActivityItem:
    return ActivityItem(
        id=f"{row.get('id', '')}-{index}",
        type=ActivityType.USER_SIGNUP,
        message=f"New user signed up: {row.get('email') or 'Anonymous'}",
        timestamp=str(row.get("created_at") or ""),
        severity=Severity.INFO,
    )


class MetricsAggregator:
    """Fan out to the upstream sources of one project and join the results."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        usage_extractor: Optional[UsageExtractor] = None,
    ):
        self._http_client = http_client
        self.usage_extractor = usage_extractor or GaugeUsageExtractor.from_settings()

    async def _guarded(
        self,
        source: str,
        project: Project,
        fetch: Callable[[], Awaitable[T]],
        default: Callable[[], T],
    ) -> T:
        """Run one source under its timeout; any failure yields ``default()``."""
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(fetch(), settings.source_timeout_seconds)
        except Exception as e:
            logger.warning(
                f"Source {source} unavailable for {project.project_ref}: {e!r}",
                extra={
                    "project_ref": project.project_ref,
                    "source": source,
                    "duration_ms": round((time.perf_counter() - started) * 1000),
                },
            )
            return default()

    # ── Primary data endpoint ──

    async def _count_or_zero(
        self, client: SupabaseClient, label: str, filters: dict | None = None
    ) -> int:
        try:
            return await client.count(settings.users_table, filters)
        except Exception as e:
            logger.error(f"Error fetching {label}: {e}")
            return 0

    async def fetch_project_stats(self, client: SupabaseClient) -> ProjectStats:
        """User counts and database size. Trends stay 0 without history."""
        since = datetime.now(timezone.utc) - timedelta(hours=settings.active_window_hours)
        total_users = await self._count_or_zero(client, "total users")
        active_users = await self._count_or_zero(
            client, "active users", {"last_sign_in_at": f"gte.{since.isoformat()}"}
        )

        try:
            database_size = format_database_size(
                await client.rpc("pg_database_size", {"name": "postgres"})
            )
        except Exception as e:
            logger.error(f"Error fetching database size: {e}")
            database_size = DEFAULT_DATABASE_SIZE

        return ProjectStats(
            total_users=total_users,
            active_users=active_users,
            database_size=database_size,
        )

    async def fetch_recent_activity(self, client: SupabaseClient) -> List[ActivityItem]:
        rows = await client.select(
            settings.users_table,
            columns="id,email,created_at",
            order="created_at.desc",
            limit=settings.effective_activity_limit,
        )
        rows = rows[: settings.effective_activity_limit]
        return [signup_to_activity(row, i) for i, row in enumerate(rows)]

    # ── Metrics endpoint ──

    async def fetch_resource_usage(self, client: SupabaseClient, project_ref: str) -> ResourceUsage:
        text = await client.fetch_metrics_text(project_ref)
        return self.usage_extractor.extract(text)

    # ── Management endpoint ──

    async def fetch_api_requests(self, project: Project) -> int:
        if project.secondary_token is None:
            return 0
        async with ManagementClient(
            project.secondary_token.get_secret_value(), self._http_client
        ) as client:
            return await client.fetch_api_request_count(project.project_ref)

    # ── Join ──

    async def snapshot(self, project: Project) -> DashboardSnapshot:
        """Concurrently fetch every source and join the defaulted results."""
        started = time.perf_counter()
        async with SupabaseClient(
            project.url, project.credential.get_secret_value(), self._http_client
        ) as client:
            stats, usage, api_requests, activity = await asyncio.gather(
                self._guarded(
                    "primary.stats", project,
                    lambda: self.fetch_project_stats(client), ProjectStats,
                ),
                self._guarded(
                    "metrics", project,
                    lambda: self.fetch_resource_usage(client, project.project_ref),
                    ResourceUsage,
                ),
                self._guarded(
                    "management", project,
                    lambda: self.fetch_api_requests(project), int,
                ),
                self._guarded(
                    "primary.activity", project,
                    lambda: self.fetch_recent_activity(client), list,
                ),
            )

        stats.api_requests = api_requests
        logger.info(
            f"Snapshot built for {project.project_ref}",
            extra={
                "project_ref": project.project_ref,
                "duration_ms": round((time.perf_counter() - started) * 1000),
            },
        )
        return DashboardSnapshot(stats=stats, usage=usage, activity=activity)
