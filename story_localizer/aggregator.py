# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Feature Aggregator
------------------
Fetches the local (ZIP), regional (state) and national features for a
resolved location. Aggregation is all-or-nothing: the regional lookup is
keyed by the local feature's state abbreviation, so a missing local
feature fails fast before any dependent call is issued.
"""

import asyncio
import logging

from . import feature_client
from .core.config import Settings
from .errors import AggregationError, StoryLocalizerError
from .models import FeatureSet, LocationQuery

logger = logging.getLogger(__name__)


class FeatureAggregator:
    """Builds the local/regional/national FeatureSet for one session."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def aggregate(self, query: LocationQuery) -> FeatureSet:
        """
        Raises:
            AggregationError: a feature is missing or a lookup failed; the
                underlying exception is kept as ``cause``.
        """
        s = self.settings
        try:
            if query.is_area_code:
                local = await feature_client.fetch_by_id(
                    s.zip_service_url, s.zip_id_field, query.area_code, include_envelope=True
                )
            else:
                local = await feature_client.fetch_by_point(
                    query.coordinate, s.zip_service_url, include_envelope=True
                )

            if local is None:
                kind = "ZIP code" if query.is_area_code else "location"
                raise AggregationError(f"No data found for {kind}: {query}")

            region_code = local.get(s.region_id_field)
            if not region_code:
                raise AggregationError(
                    f"Feature for {query} has no {s.region_id_field} attribute"
                )

            regional, national = await asyncio.gather(
                feature_client.fetch_by_id(s.state_service_url, s.region_id_field, str(region_code)),
                feature_client.fetch_by_id(s.nation_service_url, s.region_id_field, s.nation_id_value),
            )
        except AggregationError:
            raise
        except StoryLocalizerError as e:
            logger.error(f"❌ Error fetching data for {query}: {e}")
            raise AggregationError(str(e), cause=e) from e

        if regional is None or national is None:
            raise AggregationError("Failed to retrieve all necessary data features.")

        logger.debug("Data retrieval successful.")
        return FeatureSet(local=local, regional=regional, national=national)
