"""SUPAWATCH — Credential Validator.

Turns a (url, privileged key) pair into a verified project ref or a typed
failure. A malformed URL never reaches the network.
"""

import re
from typing import Optional

import httpx

from app.config import settings
from app.connectors.supabase.client import SupabaseAPIError, SupabaseClient
from app.core.errors import ErrorKind
from app.core.logging import get_logger
from app.models.project_models import ValidationResult

logger = get_logger("supabase.validator")


def url_pattern(provider_domain: str) -> re.Pattern:
    # Host must end at the provider domain: no suffixed look-alike hosts
    return re.compile(
        rf"https?://([a-z0-9]+)\.{re.escape(provider_domain)}(?=[:/?#]|$)"
    )


def extract_project_ref(url: str, provider_domain: Optional[str] = None) -> Optional[str]:
    """Subdomain ref of a project URL, or None if the URL does not match."""
    match = url_pattern(provider_domain or settings.provider_domain).match(url)
    return match.group(1) if match else None


class CredentialValidator:
    """Check a project's privileged key before the project is registered."""

    def __init__(
        self,
        provider_domain: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider_domain = provider_domain or settings.provider_domain
        self._http_client = http_client

    async def validate(self, url: str, credential: str) -> ValidationResult:
        project_ref = extract_project_ref(url, self.provider_domain)
        if project_ref is None:
            return ValidationResult(
                valid=False,
                error=ErrorKind.INVALID_URL_FORMAT,
                detail=f"Invalid project URL format (expected https://<ref>.{self.provider_domain})",
            )

        async with SupabaseClient(url, credential, self._http_client) as client:
            try:
                # Zero-row GET: unlike HEAD, errors carry a readable PostgREST code
                await client.select(settings.users_table, limit=0)
            except SupabaseAPIError as e:
                if not e.is_not_found:
                    logger.warning(
                        f"Credential check rejected for {project_ref}: {e}",
                        extra={"project_ref": project_ref, "status_code": e.status_code},
                    )
                    return ValidationResult(
                        valid=False,
                        error=ErrorKind.CREDENTIAL_REJECTED,
                        detail=str(e),
                    )
                # The key works; the queried relation just isn't exposed.
                logger.info(
                    f"Users relation not found for {project_ref}; credential accepted",
                    extra={"project_ref": project_ref},
                )

        logger.info(
            f"Credentials validated for {project_ref}", extra={"project_ref": project_ref}
        )
        return ValidationResult(valid=True, project_ref=project_ref)
