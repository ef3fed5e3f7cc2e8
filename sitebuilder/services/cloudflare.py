"""
Cloudflare DNS client (REST v4).

Only the handful of calls site provisioning needs: zone lookup, A-record
lookup/create/delete. Lookups and deletes never raise; they return False and
log instead.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from sitebuilder.config import settings

logger = logging.getLogger("sitebuilder.cloudflare")

# Cloudflare error code for "An identical record already exists."
IDENTICAL_RECORD_ERROR_CODE = 81058

UNEXPECTED_ERROR = (
    "An unexpected error occurred while creating the site. "
    "Please try again or contact support if the issue persists."
)


@dataclass
class DNSRecordResult:
    success: bool
    error: str = ""
    id: Optional[str] = None


class CloudflareClient:
    """Thin async wrapper over the zones and dns_records endpoints."""

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        app_env: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.CLOUDFLARE_API_TOKEN
        self.base_url = (base_url or settings.CLOUDFLARE_API_URL).rstrip("/")
        self.app_env = app_env or settings.APP_ENV
        self.timeout = timeout
        self._transport = transport

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        )

    async def get_zone_id(self, domain: str) -> Union[str, bool]:
        """Zone id managing `domain`, or False."""
        if self.is_staging and domain.startswith("dev."):
            domain = domain[len("dev."):]
        try:
            async with self._client() as client:
                response = await client.get("/zones", params={"name": domain})
            if not response.is_success:
                logger.error("Cloudflare API error looking up zone %s: %s", domain, response.reason_phrase)
                return False
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error verifying domain %s with Cloudflare: %s", domain, e)
            return False

        result = data.get("result") or []
        if data.get("success") and result:
            return result[0]["id"]
        return False

    async def get_dns_record_id(self, zone_id: Union[str, bool], ip: str, name: str) -> Union[str, bool]:
        """Id of the record whose content and name both match exactly, or False."""
        if not zone_id:
            return False
        try:
            async with self._client() as client:
                response = await client.get(f"/zones/{zone_id}/dns_records")
            if not response.is_success:
                logger.error("Cloudflare API error listing records for zone %s: %s", zone_id, response.reason_phrase)
                return False
            records = response.json().get("result") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error listing DNS records for zone %s: %s", zone_id, e)
            return False

        for record in records:
            if record.get("content") == ip and record.get("name") == name:
                return record["id"]
        return False

    def _record_payload(self, ip: str) -> Dict[str, Any]:
        return {
            "name": "dev" if self.is_staging else "@",
            "ttl": settings.CLOUDFLARE_RECORD_TTL,
            "type": "A",
            "comment": settings.CLOUDFLARE_RECORD_COMMENT,
            "content": ip,
            "proxied": True,
        }

    async def create_dns_record(self, zone_id: str, ip: Optional[str] = None) -> DNSRecordResult:
        """Create the proxied A record for the zone root (or `dev` in staging)."""
        content = ip if ip is not None else settings.APP_IPv4
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/zones/{zone_id}/dns_records", json=self._record_payload(content)
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error creating Cloudflare DNS record in zone %s: %s", zone_id, e)
            return DNSRecordResult(success=False, error=UNEXPECTED_ERROR)

        if not response.is_success or not data.get("success", False):
            errors = data.get("errors") or []
            if any(err.get("code") == IDENTICAL_RECORD_ERROR_CODE for err in errors):
                logger.error("An identical record already exists in zone %s", zone_id)
                return DNSRecordResult(success=False, error="An identical record already exists.")
            message = errors[0].get("message") if errors else (response.reason_phrase or "Unknown error")
            logger.error("Cloudflare API error creating record in zone %s: %s", zone_id, message)
            return DNSRecordResult(success=False, error=message)

        record_id = (data.get("result") or {}).get("id")
        logger.info("Created Cloudflare A record %s in zone %s", record_id, zone_id)
        return DNSRecordResult(success=True, id=record_id)

    async def delete_dns_record(self, zone_id: Union[str, bool], record_id: Union[str, bool, None]) -> bool:
        """Best-effort delete; False on any failure."""
        if not zone_id or not record_id:
            return False
        try:
            async with self._client() as client:
                response = await client.delete(f"/zones/{zone_id}/dns_records/{record_id}")
        except httpx.HTTPError as e:
            logger.error("Error removing Cloudflare DNS record %s: %s", record_id, e)
            return False

        if not response.is_success:
            logger.error("Cloudflare API error removing record %s: %s", record_id, response.reason_phrase)
            return False
        logger.info("Removed Cloudflare DNS record %s from zone %s", record_id, zone_id)
        return True
