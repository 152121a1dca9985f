# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Geospatial Feature Client
-------------------------
Attribute queries against ArcGIS feature services, either by
point-intersection or by exact identifier match.

Both lookups return the first matching ``Feature`` or ``None`` when the
service has no match. They raise ``TransportError`` only for transport or
parse failures, and ``ValidationError`` for malformed input.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError as SchemaError

from . import transport
from .errors import TransportError, ValidationError
from .models import Envelope, Feature, QueryResult, is_valid_coordinate

logger = logging.getLogger(__name__)

ENVELOPE_PARAMS = {"returnEnvelope": "true", "outSR": "4326"}


def _base_params(include_envelope: bool) -> Dict[str, str]:
    params = {"outFields": "*", "returnGeometry": "false", "f": "json"}
    if include_envelope:
        params.update(ENVELOPE_PARAMS)
    return params


def _quote_literal(value: str) -> str:
    """Quote a value for a SQL-92 where clause."""
    return "'" + value.replace("'", "''") + "'"


async def _query(service_url: str, params: Dict[str, str], include_envelope: bool) -> Optional[Feature]:
    url = f"{service_url.rstrip('/')}/query"
    data = await transport.fetch_json(url, params=params)

    try:
        result = QueryResult.model_validate(data)
    except SchemaError as e:
        raise TransportError(f"Unexpected query response from {url}: {e}", url=url) from e

    # ArcGIS reports query failures as HTTP 200 with an error object
    if result.error:
        code = result.error.get("code")
        message = result.error.get("message", "unknown error")
        raise TransportError(f"Feature service error {code}: {message}", status=code, url=url)

    if not result.features:
        return None

    first = result.features[0]
    extent = None
    if include_envelope and first.geometry and first.geometry.get("envelope"):
        try:
            extent = Envelope.from_json(first.geometry["envelope"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed envelope from {url}: {e}", url=url) from e

    return Feature(attributes=first.attributes, extent=extent)


async def fetch_by_point(
    coordinate: Sequence[float],
    service_url: str,
    include_envelope: bool = False,
) -> Optional[Feature]:
    """
    Fetch the feature intersecting a point.

    Args:
        coordinate: (latitude, longitude)
        service_url: Feature service layer URL
        include_envelope: Also request the bounding box, attached as ``extent``

    Returns:
        The first matching feature, or None if no feature contains the point
    """
    if coordinate is None or len(coordinate) != 2 or not is_valid_coordinate(*coordinate):
        raise ValidationError(f"Invalid coordinate: {coordinate!r}")

    lat, lon = coordinate
    params = {
        "where": "1=1",
        "geometry": f"{lon},{lat}",
        "geometryType": "esriGeometryPoint",
        "inSR": "4326",
        "spatialRel": "esriSpatialRelIntersects",
    }
    params.update(_base_params(include_envelope))

    logger.debug(f"Querying {service_url} at point ({lat}, {lon})")
    return await _query(service_url, params, include_envelope)


async def fetch_by_id(
    service_url: str,
    id_field: str,
    id_value: Any,
    include_envelope: bool = False,
) -> Optional[Feature]:
    """
    Fetch the feature whose ``id_field`` equals ``id_value`` exactly.

    Args:
        service_url: Feature service layer URL
        id_field: Name of the identifying field (e.g. "ID", "ST_ABBREV")
        id_value: Non-empty identifier value
        include_envelope: Also request the bounding box, attached as ``extent``

    Returns:
        The first matching feature, or None if nothing matches
    """
    if not isinstance(id_value, str) or not id_value.strip():
        raise ValidationError(f"Invalid {id_field} value: {id_value!r}")

    params = {"where": f"{id_field}={_quote_literal(id_value)}"}
    params.update(_base_params(include_envelope))

    logger.debug(f"Querying {service_url} where {params['where']}")
    return await _query(service_url, params, include_envelope)
