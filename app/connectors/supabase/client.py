"""SUPAWATCH — Project API Client.

Talks to a single project's own host: the PostgREST data endpoint and the
privileged metrics endpoint. Handles auth headers, retries and error mapping.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import ErrorKind
from app.core.logging import get_logger

logger = get_logger("supabase.client")

REST_PATH = "/rest/v1"
METRICS_PATH = "/customer/v1/privileged/metrics"

# PostgREST codes meaning "the relation/schema you asked for does not exist"
NOT_FOUND_CODES = {"42P01", "PGRST205", "PGRST106"}


class SupabaseAPIError(Exception):
    """Raised when an upstream call fails at the transport or HTTP level."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, status_code: int = 0, code: str = ""):
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        """True for "object not found"-class failures."""
        return self.status_code == 404 or self.code in NOT_FOUND_CODES


def _error_from_response(resp: httpx.Response) -> SupabaseAPIError:
    """Build an error from a failed response, reading PostgREST's JSON body."""
    message = f"HTTP {resp.status_code}"
    code = ""
    if resp.headers.get("content-type", "").startswith("application/json"):
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            message = body.get("message") or body.get("msg") or message
            code = str(body.get("code") or "")
    return SupabaseAPIError(message, resp.status_code, code)


def parse_content_range(value: Optional[str]) -> int:
    """Total from a ``Content-Range: 0-9/42`` or ``*/42`` header, else 0."""
    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class RetryingClient:
    """Shared retry loop for the project and management clients."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str] | None = None,
        params: Dict[str, Any] | None = None,
        json: Any = None,
        auth: Optional[httpx.BasicAuth] = None,
    ) -> httpx.Response:
        """Make a request with retry on 429, 5xx and transport errors."""
        client = await self._get_client()
        max_retries = max(1, settings.max_retries)

        for attempt in range(1, max_retries + 1):
            try:
                resp = await client.request(
                    method, url, headers=headers, params=params, json=json, auth=auth
                )
            except httpx.RequestError as e:
                if attempt < max_retries:
                    wait = settings.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise SupabaseAPIError(
                    f"Connection failed after {max_retries} attempts: {e}"
                ) from e

            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt < max_retries:
                    wait = settings.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Upstream returned {resp.status_code}. Retrying in {wait}s "
                        f"(attempt {attempt}/{max_retries})",
                        extra={"status_code": resp.status_code},
                    )
                    await asyncio.sleep(wait)
                    continue

            if resp.is_error:
                raise _error_from_response(resp)
            return resp

        raise SupabaseAPIError("Max retries exhausted")


class SupabaseClient(RetryingClient):
    """Async client for one project, authenticated with its privileged key."""

    def __init__(
        self,
        url: str,
        credential: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(http_client)
        self.base_url = url.rstrip("/")
        self._credential = credential

    def __repr__(self) -> str:
        return f"<SupabaseClient {self.base_url}>"

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._credential,
            "Authorization": f"Bearer {self._credential}",
        }

    # ── PostgREST ──

    async def count(self, table: str, filters: Dict[str, str] | None = None) -> int:
        """Exact row count without fetching rows (``HEAD`` + ``Prefer``)."""
        params: Dict[str, Any] = {"select": "*", "limit": 0, **(filters or {})}
        resp = await self._request(
            "HEAD",
            f"{self.base_url}{REST_PATH}/{table}",
            headers={**self._headers, "Prefer": "count=exact"},
            params=params,
        )
        return parse_content_range(resp.headers.get("content-range"))

    async def select(
        self,
        table: str,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Row listing, e.g. ``order="created_at.desc"``."""
        params: Dict[str, Any] = {"select": columns}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        resp = await self._request(
            "GET",
            f"{self.base_url}{REST_PATH}/{table}",
            headers=self._headers,
            params=params,
        )
        data = resp.json()
        return data if isinstance(data, list) else []

    async def rpc(self, function: str, args: Dict[str, Any] | None = None) -> Any:
        resp = await self._request(
            "POST",
            f"{self.base_url}{REST_PATH}/rpc/{function}",
            headers=self._headers,
            json=args or {},
        )
        return resp.json()

    # ── Privileged Metrics ──

    async def fetch_metrics_text(self, project_ref: str) -> str:
        """Raw exposition-format body from the privileged metrics endpoint."""
        url = f"https://{project_ref}.{settings.provider_domain}{METRICS_PATH}"
        resp = await self._request(
            "GET",
            url,
            auth=httpx.BasicAuth(settings.metrics_principal, self._credential),
        )
        return resp.text
