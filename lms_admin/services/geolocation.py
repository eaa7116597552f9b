from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from lms_admin.core.config import Settings, get_settings
from lms_admin.utils.ip_address import is_loopback_ip, is_private_ip, is_public_ip

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; LMSAuditSystem/1.0)"


class Location(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    isp: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.country_code in ("LH", "LN")

    def label(self) -> str:
        if self.is_local:
            return "Local Network"
        parts = [p for p in (self.city, self.region, self.country) if p]
        return ", ".join(parts) if parts else "Unknown Location"


LOOPBACK_LOCATION = Location(
    city="Localhost",
    region="Loopback",
    country="Local Machine",
    country_code="LH",
    isp="Local System",
)

PRIVATE_LOCATION = Location(
    city="Private Network",
    region="Private Range",
    country="Local Network",
    country_code="LN",
    isp="Private Network",
)

UNKNOWN_LOCATION = Location(
    city="Unknown",
    region="Unknown",
    country="Unknown",
    country_code="XX",
    isp="Unknown",
)


def local_location(ip: Optional[str]) -> Optional[Location]:
    """Placeholder for addresses that never go to the lookup service."""
    if is_loopback_ip(ip):
        return LOOPBACK_LOCATION
    if is_private_ip(ip):
        return PRIVATE_LOCATION
    if not is_public_ip(ip):
        return UNKNOWN_LOCATION
    return None


class GeolocationClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.timeout = timeout if timeout is not None else self.settings.geolocation_timeout_seconds

    async def lookup(self, ip: Optional[str]) -> Location:
        local = local_location(ip)
        if local is not None:
            return local

        if not self.settings.geolocation_enabled:
            return Location()

        url = self.settings.geolocation_url.format(ip=ip)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                r = await client.get(url)
            r.raise_for_status()
            data = r.json()

            if not isinstance(data, dict) or data.get("status") != "success":
                return Location()

            return Location(
                city=data.get("city"),
                region=data.get("regionName") or data.get("region"),
                country=data.get("country"),
                country_code=data.get("countryCode"),
                latitude=data.get("lat"),
                longitude=data.get("lon"),
                timezone=data.get("timezone"),
                isp=data.get("isp"),
            )
        # pydantic's ValidationError is a ValueError too
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("IP geolocation lookup failed for %s: %s", ip, e)
            return Location()
