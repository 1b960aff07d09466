"""SUPAWATCH — Management API Client.

Token-authenticated account API used only for aggregate usage statistics.
"""

from typing import Any, Optional

import httpx

from app.config import settings
from app.connectors.supabase.client import RetryingClient
from app.core.logging import get_logger

logger = get_logger("supabase.management")

USAGE_PATH = "/v1/projects/{ref}/analytics/endpoints/usage.api-requests-count"


def sum_request_counts(payload: Any) -> int:
    """Sum ``count`` across the usage rows.

    Accepts a bare array or an object wrapping it under ``result``/``data``.
    """
    if isinstance(payload, dict):
        payload = payload.get("result") or payload.get("data") or []
    if not isinstance(payload, list):
        return 0
    total = 0
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            total += int(item.get("count") or 0)
        except (TypeError, ValueError):
            continue
    return total


class ManagementClient(RetryingClient):
    """Async client for the management host, authenticated with a bearer token."""

    def __init__(self, token: str, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        self._token = token
        self.base_url = settings.management_base_url.rstrip("/")

    async def fetch_api_request_count(self, project_ref: str) -> int:
        url = f"{self.base_url}{USAGE_PATH.format(ref=project_ref)}"
        resp = await self._request(
            "GET", url, headers={"Authorization": f"Bearer {self._token}"}
        )
        total = sum_request_counts(resp.json())
        logger.info(
            f"Fetched API request count for {project_ref}: {total}",
            extra={"project_ref": project_ref},
        )
        return total
