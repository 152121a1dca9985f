# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Domain models for locations, features and address candidates.

External JSON (ArcGIS query results, geocode candidates) is validated with
pydantic before it is turned into the immutable dataclasses used by the
rest of the package.
"""

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from .errors import ValidationError

ZIP_PATTERN = re.compile(r"[0-9]{5}")
DEFAULT_WKID = 4326

Coordinate = Tuple[float, float]


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """True for finite numbers with lat in [-90, 90] and lon in [-180, 180]."""
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def is_valid_area_code(code: Any) -> bool:
    return isinstance(code, str) and bool(ZIP_PATTERN.fullmatch(code))


@dataclass(frozen=True)
class Envelope:
    """Axis-aligned bounding box plus spatial reference id."""
    xmin: float
    ymin: float
    xmax: float
    ymax: float
    wkid: int = DEFAULT_WKID

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Envelope":
        sr = data.get("spatialReference") or {}
        return cls(
            xmin=float(data["xmin"]),
            ymin=float(data["ymin"]),
            xmax=float(data["xmax"]),
            ymax=float(data["ymax"]),
            wkid=int(sr.get("latestWkid") or sr.get("wkid") or DEFAULT_WKID),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "xmin": self.xmin,
            "ymin": self.ymin,
            "xmax": self.xmax,
            "ymax": self.ymax,
            "spatialReference": {"wkid": self.wkid},
        }


@dataclass(frozen=True)
class Feature:
    """
    A single geographic record (ZIP, state, nation) returned by a feature service.

    Attributes are exposed read-only; a new location means a new Feature,
    never an in-place update.
    """
    attributes: Mapping[str, Any]
    extent: Optional[Envelope] = None

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.attributes.get(field_name, default)

    def __getitem__(self, field_name: str) -> Any:
        return self.attributes[field_name]


@dataclass(frozen=True)
class LocationQuery:
    """Exactly one of a coordinate pair or an area code (ZIP)."""
    coordinate: Optional[Coordinate] = None
    area_code: Optional[str] = None

    def __post_init__(self):
        if (self.coordinate is None) == (self.area_code is None):
            raise ValidationError("LocationQuery needs exactly one of coordinate or area_code")
        if self.coordinate is not None:
            lat, lon = self.coordinate
            if not is_valid_coordinate(lat, lon):
                raise ValidationError(f"Coordinate out of range: {self.coordinate}")
        if self.area_code is not None and not is_valid_area_code(self.area_code):
            raise ValidationError(f"Invalid area code: {self.area_code!r}")

    @property
    def is_area_code(self) -> bool:
        return self.area_code is not None

    @classmethod
    def from_area_code(cls, code: str) -> "LocationQuery":
        return cls(area_code=code)

    @classmethod
    def from_coordinate(cls, lat: float, lon: float) -> "LocationQuery":
        return cls(coordinate=(lat, lon))

    @staticmethod
    def parse_area_code(raw: Optional[str]) -> Optional["LocationQuery"]:
        """Parse a ZIP parameter; invalid input is treated as absent."""
        if raw is None:
            return None
        raw = raw.strip()
        if not is_valid_area_code(raw):
            return None
        return LocationQuery(area_code=raw)

    @staticmethod
    def parse_coordinate(raw: Optional[str]) -> Optional["LocationQuery"]:
        """Parse a "lat,lon" parameter; invalid input is treated as absent."""
        if raw is None:
            return None
        parts = raw.split(",")
        if len(parts) != 2:
            return None
        try:
            lat, lon = float(parts[0]), float(parts[1])
        except ValueError:
            return None
        if not is_valid_coordinate(lat, lon):
            return None
        return LocationQuery(coordinate=(lat, lon))

    def __str__(self) -> str:
        if self.area_code is not None:
            return self.area_code
        return f"{self.coordinate[0]},{self.coordinate[1]}"


@dataclass(frozen=True)
class FeatureSet:
    """The three comparison scopes driving the substitutions."""
    local: Feature
    regional: Feature
    national: Feature


@dataclass(frozen=True)
class Candidate:
    """An address search result."""
    address: str
    latitude: float
    longitude: float
    score: float = 0.0

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)


# ============================================================================
# EXTERNAL JSON SCHEMAS
# ============================================================================

class QueryFeature(BaseModel):
    attributes: Dict[str, Any] = Field(default_factory=dict)
    geometry: Optional[Dict[str, Any]] = None


class QueryResult(BaseModel):
    """ArcGIS feature service ``/query`` response envelope."""
    features: List[QueryFeature] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None


class CandidateLocation(BaseModel):
    x: float
    y: float


class GeocodeCandidate(BaseModel):
    address: str
    location: CandidateLocation
    score: float = 0.0

    def to_candidate(self) -> Candidate:
        return Candidate(
            address=self.address,
            latitude=self.location.y,
            longitude=self.location.x,
            score=self.score,
        )


class CandidateResult(BaseModel):
    """``findAddressCandidates`` response envelope."""
    candidates: List[GeocodeCandidate] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
