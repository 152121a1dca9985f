# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Story Localizer

Resolves the reader's location to ZIP / state / nation demographic
features and rewrites the JSON documents of an embedded story so its
charts, infographics and maps reflect that location.

Components:
- feature_client - ArcGIS feature queries by point or by id
- location_resolver - parameter -> device geolocation -> fallback
- aggregator - local / regional / national FeatureSet
- interceptor - FetchInterceptor wrapping transport.fetch
- substitutions - rules rewriting web maps, charts and story nodes
- search - debounced address search
- session - two-pass page session (resolving / rendering)
"""

__version__ = "1.0.0"

from .aggregator import FeatureAggregator
from .errors import (
    AggregationError,
    MutationError,
    StoryLocalizerError,
    TransportError,
    ValidationError,
)
from .interceptor import FetchInterceptor
from .location_resolver import LocationResolver, Resolution
from .models import Envelope, Feature, FeatureSet, LocationQuery
from .search import DebouncedSearch
from .session import PageSession, run_until_rendered
from .substitutions import SubstitutionRule, build_rules

__all__ = [
    "FeatureAggregator",
    "FetchInterceptor",
    "LocationResolver",
    "Resolution",
    "DebouncedSearch",
    "PageSession",
    "run_until_rendered",
    "SubstitutionRule",
    "build_rules",
    "Envelope",
    "Feature",
    "FeatureSet",
    "LocationQuery",
    "StoryLocalizerError",
    "TransportError",
    "ValidationError",
    "AggregationError",
    "MutationError",
]
