# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Multi-Strategy Location Resolver
--------------------------------
Produces the canonical LocationQuery for a session, trying in order:

1. Explicit parameter - ``zip`` or ``latlon`` in the session URL
2. Device geolocation - one fresh fix, bounded timeout, reverse-resolved to a ZIP
3. Fallback - random pick from the curated ZIP list (or a fixed default)

The first strategy that produces a location wins. The fallback cannot fail,
so ``resolve`` always returns a Resolution.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from . import feature_client
from .core.config import DEFAULT_RANDOM_ZIPS, Settings
from .errors import StoryLocalizerError
from .geolocation import DeniedGeolocationProvider, GeolocationProvider, GeolocationUnavailable
from .models import LocationQuery, is_valid_area_code

logger = logging.getLogger(__name__)

STRATEGY_PARAMETER = "parameter"
STRATEGY_GEOLOCATION = "geolocation"
STRATEGY_FALLBACK = "fallback"


@dataclass(frozen=True)
class Resolution:
    """Outcome of location resolution."""
    query: LocationQuery
    strategy: str
    latency_ms: float = 0.0


def location_from_params(zip_param: Optional[str], latlon_param: Optional[str]) -> Optional[LocationQuery]:
    """
    Explicit-parameter strategy.

    An area code takes precedence over a coordinate pair. Values that fail
    validation are treated as absent.
    """
    query = LocationQuery.parse_area_code(zip_param)
    if query is not None:
        return query
    if zip_param is not None:
        logger.warning(f"⚠️ Ignoring invalid zip parameter: {zip_param!r}")

    query = LocationQuery.parse_coordinate(latlon_param)
    if query is not None:
        return query
    if latlon_param is not None:
        logger.warning(f"⚠️ Ignoring invalid latlon parameter: {latlon_param!r}")
    return None


class LocationResolver:
    """
    🌍 Resolves the session location with deterministic fallback order.

    Args:
        settings: service URLs, candidate ZIP list, geolocation timeout
        geolocation: device position provider (denied by default)
        reverse_geocode: turn a device fix into a ZIP before returning it
        fallback_zip: fixed default instead of a random pick
        choice: random picker, injectable for tests
    """

    def __init__(
        self,
        settings: Settings,
        geolocation: Optional[GeolocationProvider] = None,
        reverse_geocode: bool = True,
        fallback_zip: Optional[str] = None,
        choice: Callable[[List[str]], str] = random.choice,
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.geolocation = geolocation or DeniedGeolocationProvider()
        self.reverse_geocode = reverse_geocode
        self.fallback_zip = self._checked_fallback_zip(fallback_zip)
        self.random_zips = self._checked_random_zips(settings.random_zips)
        self._choice = choice

    async def resolve(
        self,
        zip_param: Optional[str] = None,
        latlon_param: Optional[str] = None,
    ) -> Resolution:
        start = time.time()

        # ✅ STRATEGY 1: explicit parameter
        query = location_from_params(zip_param, latlon_param)
        if query is not None:
            return Resolution(query, STRATEGY_PARAMETER, (time.time() - start) * 1000)

        self.logger.debug("⚠️ No location param provided. Attempting geolocation...")

        # ✅ STRATEGY 2: device geolocation
        query = await self._resolve_geolocation()
        if query is not None:
            return Resolution(query, STRATEGY_GEOLOCATION, (time.time() - start) * 1000)

        # ✅ STRATEGY 3: fallback, cannot fail
        query = self.fallback_query()
        self.logger.debug(f"Using fallback ZIP {query.area_code}")
        return Resolution(query, STRATEGY_FALLBACK, (time.time() - start) * 1000)

    def random_zip(self) -> str:
        return self._choice(self.random_zips)

    def fallback_query(self) -> LocationQuery:
        code = self.fallback_zip or self.random_zip()
        return LocationQuery.from_area_code(code)

    def _checked_fallback_zip(self, fallback_zip: Optional[str]) -> Optional[str]:
        if fallback_zip is None:
            return None
        query = LocationQuery.parse_area_code(fallback_zip)
        if query is None:
            self.logger.warning(f"⚠️ Ignoring invalid fallback ZIP: {fallback_zip!r}")
            return None
        return query.area_code

    def _checked_random_zips(self, zips: List[str]) -> List[str]:
        valid = [code for code in zips if is_valid_area_code(code)]
        if len(valid) != len(zips):
            invalid = [code for code in zips if not is_valid_area_code(code)]
            self.logger.warning(f"⚠️ Dropping invalid RANDOM_ZIPS entries: {invalid}")
        if not valid:
            self.logger.warning("⚠️ No valid RANDOM_ZIPS configured, using the built-in list")
            return list(DEFAULT_RANDOM_ZIPS)
        return valid

    async def _resolve_geolocation(self) -> Optional[LocationQuery]:
        try:
            lat, lon = await asyncio.wait_for(
                self.geolocation.current_position(),
                timeout=self.settings.geolocation_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"❌ Geolocation timed out after {self.settings.geolocation_timeout}s"
            )
            return None
        except GeolocationUnavailable as e:
            self.logger.warning(f"❌ Geolocation failed or was denied: {e}")
            return None

        self.logger.debug(f"Geolocated user at: {lat}, {lon}")

        if not self.reverse_geocode:
            return LocationQuery.from_coordinate(lat, lon)

        self.logger.debug("Fetching ZIP code for location...")
        try:
            feature = await feature_client.fetch_by_point((lat, lon), self.settings.zip_service_url)
        except StoryLocalizerError as e:
            self.logger.warning(f"⚠️ ZIP lookup for geolocated position failed: {e}")
            return None

        code = feature.get(self.settings.zip_id_field) if feature else None
        query = LocationQuery.parse_area_code(str(code)) if code is not None else None
        if query is None:
            self.logger.debug("⚠️ No ZIP found for location.")
            return None

        self.logger.debug(f"ZIP found: {query.area_code}")
        return query
