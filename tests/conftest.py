"""
Test Configuration and Fixtures

Shared configuration and fixtures for the Story Localizer test suite.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from story_localizer import transport
from story_localizer.core.config import Settings
from story_localizer.models import Envelope, Feature, FeatureSet
from story_localizer.transport import FetchResponse

# Test environment configuration
TEST_ENV = {
    "STORY_ID": "story123",
    "STORY_BASE_URL": "https://stories.test",
    "ITEM_DATA_BASE_URL": "https://items.test/items",
    "CONTENT_WEBMAP_ID": "contentmap",
    "LOCATOR_WEBMAP_ID": "locatormap",
    "ZIP_SERVICE_URL": "https://features.test/FeatureServer/1",
    "STATE_SERVICE_URL": "https://features.test/FeatureServer/2",
    "NATION_SERVICE_URL": "https://features.test/FeatureServer/0",
    "GEOCODE_URL": "https://geocode.test/findAddressCandidates",
    "ARCGIS_API_KEY": "test-key",
    "GEOLOCATION_TIMEOUT": "0.2",
    "EXTENT_BUFFER": "0.05",
    "RANDOM_ZIPS": "33109,94027,90210",
}

ZIP_QUERY = "https://features.test/FeatureServer/1/query"
STATE_QUERY = "https://features.test/FeatureServer/2/query"
NATION_QUERY = "https://features.test/FeatureServer/0/query"


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Automatically configure test environment for all tests"""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def settings():
    """Settings built from TEST_ENV"""
    return Settings()


# ============================================================================
# Fake network
# ============================================================================

class FakeNetwork:
    """
    Stands in for the real transport primitive.

    Routes match on a URL substring plus optional exact query parameters;
    the first matching route answers. Unrouted requests get a 404.
    """

    def __init__(self):
        self.routes: List[Tuple[str, Dict[str, str], int, Any]] = []
        self.calls: List[Tuple[Any, Dict[str, Any]]] = []

    def add(self, pattern: str, payload: Any, status: int = 200, **params: str) -> None:
        self.routes.append((pattern, params, status, payload))

    def add_feature(self, query_url: str, where: str, attributes: Dict[str, Any],
                    envelope: Optional[Dict[str, Any]] = None) -> None:
        feature: Dict[str, Any] = {"attributes": attributes}
        if envelope is not None:
            feature["geometry"] = {"envelope": envelope}
        self.add(query_url, {"features": [feature]}, where=where)

    def calls_to(self, pattern: str) -> List[Tuple[Any, Dict[str, Any]]]:
        return [c for c in self.calls if isinstance(c[0], str) and pattern in c[0]]

    async def fetch(self, url: Any, **kwargs: Any) -> FetchResponse:
        self.calls.append((url, kwargs))
        params = kwargs.get("params") or {}
        for pattern, expected, status, payload in self.routes:
            if pattern in str(url) and all(params.get(k) == v for k, v in expected.items()):
                body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
                return FetchResponse(body, status=status, headers={"Content-Type": "application/json"}, url=str(url))
        return FetchResponse(b"Not Found", status=404, url=str(url))


@pytest.fixture
def network(monkeypatch):
    """Replace transport.fetch with a FakeNetwork for the duration of a test"""
    fake = FakeNetwork()
    monkeypatch.setattr(transport, "fetch", fake.fetch)
    return fake


# ============================================================================
# Sample features
# ============================================================================

@pytest.fixture
def zip_attributes():
    return {
        "ID": "92373",
        "NAME": "Redlands",
        "ST_ABBREV": "CA",
        "MEDHINC_CY": 75000,
        "MEDVAL_CY": 1250000,
        "HAI_CY": 61.6,
    }


@pytest.fixture
def state_attributes():
    return {
        "ID": "06",
        "NAME": "California",
        "ST_ABBREV": "CA",
        "MEDHINC_CY": 96000,
        "MEDVAL_CY": 780000,
        "HAI_CY": 58.2,
    }


@pytest.fixture
def nation_attributes():
    return {
        "ID": "01",
        "NAME": "United States",
        "ST_ABBREV": "US",
        "MEDHINC_CY": 79000,
        "MEDVAL_CY": 355000,
        "HAI_CY": 98.4,
    }


@pytest.fixture
def sample_envelope():
    """ZIP envelope as returned by the feature service"""
    return {"xmin": 10, "ymin": 10, "xmax": 20, "ymax": 20, "spatialReference": {"wkid": 4326}}


@pytest.fixture
def feature_set(zip_attributes, state_attributes, nation_attributes, sample_envelope):
    return FeatureSet(
        local=Feature(zip_attributes, extent=Envelope.from_json(sample_envelope)),
        regional=Feature(state_attributes),
        national=Feature(nation_attributes),
    )


@pytest.fixture
def demographics_network(network, zip_attributes, state_attributes, nation_attributes, sample_envelope):
    """FakeNetwork answering the ZIP 92373 / CA / US lookups"""
    network.add_feature(ZIP_QUERY, "ID='92373'", zip_attributes, envelope=sample_envelope)
    network.add_feature(STATE_QUERY, "ST_ABBREV='CA'", state_attributes)
    network.add_feature(NATION_QUERY, "ST_ABBREV='US'", nation_attributes)
    return network


# ============================================================================
# Sample story documents
# ============================================================================

@pytest.fixture
def story_json():
    """Published story with two webmap nodes, infographics and buttons"""
    return {
        "publishedData": {
            "nodes": {
                "n-map1": {"type": "webmap", "data": {"map": "r-map", "extent": {"xmin": 0}, "zoom": 3}},
                "n-map2": {
                    "type": "webmap",
                    "data": {"map": "r-map", "extent": {"xmin": 1}, "center": [0, 0], "viewpoint": {}, "zoom": 5},
                },
                "n-93Bl6H": {"type": "infographic", "data": {"title": "$0", "description": "Median income in [ZIP code]"}},
                "n-qeiFVu": {"type": "infographic", "data": {"title": "$0", "description": "Home value in [ZIP code]"}},
                "n-INkYub": {"type": "infographic", "data": {"title": "0", "description": "Affordability in [ZIP code]"}},
                "n-vhFhqc": {"type": "button", "data": {"link": "https://example.com/change"}},
                "n-uUsrRp": {"type": "button", "data": {"link": "https://example.com/surprise"}},
                "n-unknown": {"type": "text", "data": {"text": "Leave [ZIP code] alone"}},
            },
            "resources": {
                "r-map": {
                    "type": "webmap",
                    "data": {"itemId": "contentmap", "extent": {"xmin": -180, "ymin": -90, "xmax": 180, "ymax": 90}},
                },
                "r-chart": {"type": "chart", "data": {}},
            },
        }
    }


@pytest.fixture
def chart_json():
    return {
        "chartConfig": {"title": {"content": {"text": "Median Household Income"}}},
        "inlineData": {
            "dataItems": [
                {"category": "ZIP", "field1": 0},
                {"category": "State", "field1": 0},
                {"category": "Nation", "field1": 0},
            ]
        },
    }


@pytest.fixture
def webmap_json():
    return {
        "operationalLayers": [
            {"id": f"layer{i}", "layerDefinition": {"definitionExpression": "1=1"},
             "customParameters": {"where": "1=1"}}
            for i in range(6)
        ]
    }
