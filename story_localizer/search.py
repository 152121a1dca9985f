# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Debounced address search used by the "Change ZIP code" flow.

State machine per search session::

    Idle -> Pending(timer) -> Fetching -> Idle

Every keystroke cancels the pending timer and starts a new one. When the
timer fires, short queries clear the results without a request; longer
ones issue a candidate search. Results are delivered only for the most
recently issued request (issuance order, not completion order).
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from pydantic import ValidationError as SchemaError

from . import feature_client, transport
from .core.config import Settings
from .errors import StoryLocalizerError, TransportError
from .models import Candidate, CandidateResult, LocationQuery

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[List[Candidate]]]
ResultsCallback = Callable[[List[Candidate]], None]
CompleteCallback = Callable[[Optional[Candidate]], None]


class CandidateSearchClient:
    """Geocoding ``findAddressCandidates`` client."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def find_candidates(self, text: str) -> List[Candidate]:
        """
        Search for address/place candidates.

        Raises:
            TransportError: request failed or the service returned an error
        """
        params = {
            "f": "pjson",
            "singleLine": text.strip(),
            "countryCode": self.settings.search_country_code,
            "maxLocations": str(self.settings.search_max_locations),
        }
        if self.settings.arcgis_api_key:
            params["token"] = self.settings.arcgis_api_key

        logger.debug(f"Fetching candidates for: {text!r}")
        data = await transport.fetch_json(self.settings.geocode_url, params=params)

        try:
            result = CandidateResult.model_validate(data)
        except SchemaError as e:
            raise TransportError(f"Unexpected candidate response: {e}", url=self.settings.geocode_url) from e
        if result.error:
            raise TransportError(
                f"Geocode error: {result.error.get('message', 'unknown error')}",
                status=result.error.get("code"),
                url=self.settings.geocode_url,
            )

        candidates = [c.to_candidate() for c in result.candidates]
        logger.debug(f"Candidates found: {len(candidates)}")
        return candidates


class ZipValidator:
    """Accepts a ZIP only if the ZIP feature service knows it."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def exists(self, zip_code: str) -> bool:
        if LocationQuery.parse_area_code(zip_code) is None:
            return False
        feature = await feature_client.fetch_by_id(
            self.settings.zip_service_url, self.settings.zip_id_field, zip_code.strip()
        )
        return feature is not None


class DebouncedSearch:
    """
    Trailing-edge debounced candidate search.

    Args:
        search_fn: coroutine returning candidates for a query
        on_results: called with the candidates of the latest request
        on_complete: called exactly once, with the selected candidate or None
        delay: quiet period in seconds before a search is issued
        min_length: queries shorter than this (after stripping) clear results
    """

    def __init__(
        self,
        search_fn: SearchFn,
        on_results: ResultsCallback,
        on_complete: Optional[CompleteCallback] = None,
        delay: float = 0.3,
        min_length: int = 3,
    ):
        self.search_fn = search_fn
        self.on_results = on_results
        self.on_complete = on_complete
        self.delay = delay
        self.min_length = min_length

        self.text = ""
        self._timer: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._in_flight: Set["asyncio.Task[None]"] = set()
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def generation(self) -> int:
        """Id of the latest timer outcome; older requests are stale."""
        return self._generation

    def input_changed(self, text: str) -> None:
        if self._closed:
            return
        self._cancel_timer()
        self.text = text
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def select(self, candidate: Candidate) -> None:
        self._complete(candidate)

    def cancel(self) -> None:
        self._complete(None)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and every issued request finished."""
        while self._timer is not None or self._in_flight:
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
            else:
                await asyncio.sleep(self.delay / 2 or 0.01)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        query = self.text.strip()

        # any newer outcome supersedes requests still in flight
        self._generation += 1
        request_id = self._generation

        if len(query) < self.min_length:
            self.on_results([])
            return

        task = asyncio.ensure_future(self._run(request_id, query))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, request_id: int, query: str) -> None:
        try:
            results = await self.search_fn(query)
        except StoryLocalizerError as e:
            logger.error(f"Error fetching candidates: {e}")
            results = []
        except Exception as e:
            logger.exception(f"Unexpected error fetching candidates: {e}")
            results = []

        if self._closed or request_id != self._generation:
            logger.debug(f"Discarding superseded results for {query!r}")
            return
        self.on_results(results)

    def _complete(self, candidate: Optional[Candidate]) -> None:
        if self._closed:
            return
        self._cancel_timer()
        self._closed = True
        if self.on_complete is not None:
            self.on_complete(candidate)
