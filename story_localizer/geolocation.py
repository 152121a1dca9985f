# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Device geolocation providers.

A provider returns one fresh position fix or raises GeolocationUnavailable
when the fix fails or permission is denied. Callers bound the request with
a timeout and never retry.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from . import transport
from .errors import StoryLocalizerError
from .models import Coordinate, is_valid_coordinate

logger = logging.getLogger(__name__)


class GeolocationUnavailable(StoryLocalizerError):
    """The position fix failed or permission was denied."""


class GeolocationProvider(ABC):
    """Base class for one-shot position providers."""

    name = "geolocation"

    @abstractmethod
    async def current_position(self) -> Coordinate:
        """Return (latitude, longitude) or raise GeolocationUnavailable."""


class FixedGeolocationProvider(GeolocationProvider):
    """A position fix handed in by the caller (e.g. from the device)."""

    name = "fixed"

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    async def current_position(self) -> Coordinate:
        if not is_valid_coordinate(self.latitude, self.longitude):
            raise GeolocationUnavailable(f"Invalid position fix: {self.latitude}, {self.longitude}")
        return (self.latitude, self.longitude)


class DeniedGeolocationProvider(GeolocationProvider):
    """Geolocation permission denied."""

    name = "denied"

    async def current_position(self) -> Coordinate:
        raise GeolocationUnavailable("User denied Geolocation")


class IPGeolocationProvider(GeolocationProvider):
    """
    Approximate position from an IP geolocation service.

    Expects a JSON body with ``latitude``/``longitude`` (ipapi.co) or
    ``lat``/``lon`` (ip-api.com) members. Responses are never cached.
    """

    name = "ip"

    def __init__(self, url: str):
        self.url = url

    async def current_position(self) -> Coordinate:
        try:
            data = await transport.fetch_json(self.url, headers={"Cache-Control": "no-cache"})
        except StoryLocalizerError as e:
            raise GeolocationUnavailable(f"IP geolocation failed: {e}") from e

        if not isinstance(data, dict):
            raise GeolocationUnavailable("IP geolocation returned an unexpected payload")

        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if not is_valid_coordinate(lat, lon):
            raise GeolocationUnavailable(f"IP geolocation returned no usable position: {lat}, {lon}")

        logger.debug(f"IP geolocation fix: {lat}, {lon}")
        return (float(lat), float(lon))


def provider_from_options(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    deny: bool = False,
    ip_url: Optional[str] = None,
) -> GeolocationProvider:
    """Pick a provider from command line style options."""
    if deny:
        return DeniedGeolocationProvider()
    if latitude is not None and longitude is not None:
        return FixedGeolocationProvider(latitude, longitude)
    if ip_url:
        return IPGeolocationProvider(ip_url)
    return DeniedGeolocationProvider()
