# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Page session: one pass over a session URL.

The session URL's query string is the only persisted state. A pass is in
one of two states:

- Resolving: no usable location parameter. Resolve one and end the pass
  with a Redirect that encodes it (no aggregation, no substitution).
- Rendering: a location parameter is present. Aggregate features, build
  and install the substitution rules, and only then load the story.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import parse_qs, quote, urlsplit

from . import feature_client
from .aggregator import FeatureAggregator
from .core.app_logging import enable_debug_mode
from .core.config import Settings
from .embed import StoryDocument, StoryEmbed
from .errors import AggregationError
from .interceptor import FetchInterceptor
from .location_resolver import LocationResolver, location_from_params
from .models import Candidate, FeatureSet, LocationQuery
from .substitutions import build_rules

logger = logging.getLogger(__name__)

PARAM_ZIP = "zip"
PARAM_LATLON = "latlon"
PARAM_DEBUG = "debug"
PARAM_SCROLL = "scroll"

# section holding the "Change ZIP code" / "Surprise me" links
SCROLL_TARGET_NODE = "n-fgL3qP"


class SessionState(str, Enum):
    RESOLVING = "resolving"
    RENDERING = "rendering"


class SessionURL:
    """Recognized parameters of the page URL: zip, latlon, debug, scroll."""

    def __init__(self, url: str):
        self.url = url
        parts = urlsplit(url)
        self.base = url.split("?", 1)[0].split("#", 1)[0]
        self._params = parse_qs(parts.query, keep_blank_values=True)

    def _first(self, name: str) -> Optional[str]:
        values = self._params.get(name)
        return values[0] if values else None

    @property
    def zip(self) -> Optional[str]:
        return self._first(PARAM_ZIP)

    @property
    def latlon(self) -> Optional[str]:
        return self._first(PARAM_LATLON)

    @property
    def debug(self) -> bool:
        return PARAM_DEBUG in self._params

    @property
    def scroll(self) -> bool:
        return PARAM_SCROLL in self._params

    def location(self) -> Optional[LocationQuery]:
        return location_from_params(self.zip, self.latlon)

    def redirect_url(self, query: LocationQuery, include_scroll: bool = False) -> str:
        if query.is_area_code:
            target = f"{self.base}?{PARAM_ZIP}={quote(query.area_code)}"
        else:
            lat, lon = query.coordinate
            target = f"{self.base}?{PARAM_LATLON}={quote(f'{lat},{lon}', safe=',')}"
        if include_scroll:
            target += f"&{PARAM_SCROLL}"
        return target


@dataclass(frozen=True)
class Redirect:
    url: str
    delay: float = 0.0
    strategy: str = ""


@dataclass
class Rendered:
    document: StoryDocument
    features: FeatureSet
    query: LocationQuery
    scroll_target: Optional[str] = None


@dataclass(frozen=True)
class RenderFailed:
    """Single user-visible failure message for the pass."""
    message: str
    error: Optional[BaseException] = None


PassResult = Union[Redirect, Rendered, RenderFailed]


class PageSession:
    """
    One page load.

    Args:
        url: the session URL
        settings: application settings
        resolver: location resolver used in the Resolving state
    """

    def __init__(self, url: str, settings: Settings, resolver: Optional[LocationResolver] = None):
        self.session_url = SessionURL(url)
        self.location = self.session_url.location()
        self.settings = settings
        self.resolver = resolver or LocationResolver(settings)
        self.interceptor: Optional[FetchInterceptor] = None
        self.loading = False

        if self.session_url.debug:
            enable_debug_mode()

    @property
    def state(self) -> SessionState:
        if self.location is None:
            return SessionState.RESOLVING
        return SessionState.RENDERING

    async def run(self) -> PassResult:
        if self.state is SessionState.RESOLVING:
            return await self._resolve()
        return await self._render(self.location)

    async def _resolve(self) -> Redirect:
        # URL parameters were already parsed and found unusable
        resolution = await self.resolver.resolve()
        delay = self.settings.debug_message_duration if self.session_url.debug else 0.0
        url = self.session_url.redirect_url(resolution.query)
        logger.debug(f"Using {resolution.query} ({resolution.strategy}). Redirecting...")
        return Redirect(url=url, delay=delay, strategy=resolution.strategy)

    async def _render(self, query: LocationQuery) -> PassResult:
        self.loading = True
        logger.info("Updating maps to reflect your selected location...")

        try:
            features = await FeatureAggregator(self.settings).aggregate(query)
        except AggregationError as e:
            logger.error(f"Error fetching data: {e}")
            self.loading = False
            return RenderFailed(message=str(e), error=e)

        # install before the embed issues its first request
        self.interceptor = FetchInterceptor(build_rules(features, self.settings))
        self.interceptor.install()
        try:
            document = await StoryEmbed(self.settings).load()
        finally:
            self.loading = False

        scroll_target = SCROLL_TARGET_NODE if self.session_url.scroll else None
        return Rendered(document=document, features=features, query=query, scroll_target=scroll_target)

    def close(self) -> None:
        """End of the page load: hand the transport back."""
        if self.interceptor is not None:
            self.interceptor.teardown()
            self.interceptor = None

    def surprise_me(self) -> Redirect:
        """Redirect to a random ZIP, scrolled to the location links."""
        query = LocationQuery.from_area_code(self.resolver.random_zip())
        return Redirect(url=self.session_url.redirect_url(query, include_scroll=True), strategy="random")

    async def change_location(self, candidate: Candidate) -> Optional[Redirect]:
        """
        Redirect to the ZIP containing a selected address candidate.

        Returns None when no ZIP contains the candidate's point.
        """
        feature = await feature_client.fetch_by_point(
            candidate.coordinate, self.settings.zip_service_url
        )
        code = feature.get(self.settings.zip_id_field) if feature else None
        query = LocationQuery.parse_area_code(str(code)) if code is not None else None
        if query is None:
            logger.warning(f"⚠️ No ZIP found for {candidate.address}")
            return None
        return Redirect(url=self.session_url.redirect_url(query, include_scroll=True), strategy="search")

    def change_zip(self, zip_code: str) -> Redirect:
        """Redirect to an already validated ZIP."""
        query = LocationQuery.from_area_code(zip_code)
        return Redirect(url=self.session_url.redirect_url(query, include_scroll=True), strategy="zip")


async def run_until_rendered(
    url: str,
    settings: Settings,
    resolver: Optional[LocationResolver] = None,
    max_passes: int = 3,
    honor_delay: bool = True,
) -> PassResult:
    """
    Follow redirects like a browser would until a pass renders or fails.

    Only a rendering pass installs an interceptor, and it is torn down
    when that pass ends, whether the story loaded or the load failed.
    """
    for _ in range(max_passes):
        session = PageSession(url, settings, resolver)
        try:
            result = await session.run()
        finally:
            session.close()
        if not isinstance(result, Redirect):
            return result
        if honor_delay and result.delay > 0:
            await asyncio.sleep(result.delay)
        url = result.url
    return RenderFailed(message=f"Too many redirects (last: {url})")
