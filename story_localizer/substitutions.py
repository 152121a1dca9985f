# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Substitution Rule Set
---------------------
Rules that rewrite the story's JSON documents for the resolved location.

Each rule pairs a URL fragment with a mutation that knows one document
shape:

- web map definition expressions (layer picked by fixed position)
- chart inline data (three rows: local / regional / national)
- story webmap extents (buffered local envelope)
- story node text, keyed by stable node id

Rules only ever see the deep copy handed to them by the interceptor. A
document that does not have the expected shape raises MutationError.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .core.config import Settings
from .errors import MutationError
from .geometry import buffered_extent
from .models import FeatureSet

logger = logging.getLogger(__name__)

Json = Dict[str, Any]

FIELD_MEDIAN_INCOME = "MEDHINC_CY"
FIELD_MEDIAN_HOME_VALUE = "MEDVAL_CY"
FIELD_AFFORDABILITY = "HAI_CY"

# (keyword in lower-cased chart title, field code); first keyword found wins
CHART_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("income", FIELD_MEDIAN_INCOME),
    ("value", FIELD_MEDIAN_HOME_VALUE),
    ("affordability", FIELD_AFFORDABILITY),
)

WEBMAP_VIEW_KEYS = ("extent", "center", "viewpoint", "zoom")


@dataclass(frozen=True)
class SubstitutionRule:
    """A URL fragment and the mutation applied to matching JSON responses."""
    match_pattern: str
    mutate: Callable[[Any], None]
    name: str = ""

    def apply(self, document: Any) -> None:
        try:
            self.mutate(document)
        except MutationError:
            raise
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise MutationError(
                f"Substitution rule '{self.name or self.match_pattern}' failed: {e!r}",
                rule=self.name or self.match_pattern,
            ) from e


# ============================================================================
# VALUE FORMATTERS
# ============================================================================

def format_currency(value: float) -> str:
    """US dollars without cents, e.g. ``$75,000``."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_home_value(value: float) -> str:
    if value >= 2_000_000:
        return "≥ $2 million"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f} million"
    return format_currency(value)


def format_index(value: float) -> str:
    return f"{value:.0f}"


# ============================================================================
# NODE ACTIONS
# ============================================================================

@dataclass(frozen=True)
class SetTitle:
    """Replace ``data.title`` with a formatted attribute of the local feature."""
    field: str
    formatter: Callable[[Any], str]

    def apply(self, node: Json, features: FeatureSet) -> None:
        node["data"]["title"] = self.formatter(features.local[self.field])


@dataclass(frozen=True)
class ReplacePlaceholder:
    """Replace the first ``token`` in ``data.description`` with a local attribute."""
    token: str
    field: str

    def apply(self, node: Json, features: FeatureSet) -> None:
        data = node["data"]
        data["description"] = data["description"].replace(
            self.token, str(features.local[self.field]), 1
        )


@dataclass(frozen=True)
class SetLink:
    """Point a button node at ``href`` so the page can find and rewire it."""
    href: str = "#"

    def apply(self, node: Json, features: FeatureSet) -> None:
        if node.get("data"):
            node["data"]["link"] = self.href


NodeAction = Union[SetTitle, ReplacePlaceholder, SetLink]


def default_node_actions(placeholder: str, id_field: str = "ID") -> Dict[str, Sequence[NodeAction]]:
    """Node id -> actions for the published story."""
    replace_zip = ReplacePlaceholder(placeholder, id_field)
    return {
        # median household income infographic
        "n-93Bl6H": (SetTitle(FIELD_MEDIAN_INCOME, format_currency), replace_zip),
        # median home value infographic
        "n-qeiFVu": (SetTitle(FIELD_MEDIAN_HOME_VALUE, format_home_value), replace_zip),
        # housing affordability index infographic
        "n-INkYub": (SetTitle(FIELD_AFFORDABILITY, format_index), replace_zip),
        # "Change ZIP code" and "Surprise me" buttons
        "n-vhFhqc": (SetLink("#"),),
        "n-uUsrRp": (SetLink("#"),),
    }


# ============================================================================
# MUTATIONS
# ============================================================================

def set_layer_property(
    document: Json,
    layer_index: int,
    path: Sequence[str],
    value: Any,
) -> None:
    """Set ``operationalLayers[layer_index].<path>`` to ``value``."""
    target = document["operationalLayers"][layer_index]
    for key in path[:-1]:
        target = target[key]
    target[path[-1]] = value


def classify_chart(title: Optional[str]) -> Optional[str]:
    """Map a chart title to the attribute it plots, or None if unknown."""
    if not isinstance(title, str):
        return None
    lowered = title.lower()
    for keyword, field_code in CHART_FIELDS:
        if keyword in lowered:
            return field_code
    return None


def _chart_title(document: Json) -> Optional[str]:
    title = (document.get("chartConfig") or {}).get("title") or {}
    return (title.get("content") or {}).get("text")


def rewrite_chart(document: Json, features: FeatureSet, name_field: str = "NAME", id_field: str = "ID") -> bool:
    """
    Overwrite the three chart rows with local / regional / national values.

    Returns False (and leaves the document untouched) for charts whose
    subject cannot be classified.
    """
    title = _chart_title(document)
    field_code = classify_chart(title)
    logger.debug(f"Modifying chart data JSON: {title}")

    if field_code is None:
        logger.debug(f"Unknown chart type: {title}")
        return False

    rows = (
        (features.local, id_field),
        (features.regional, name_field),
        (features.national, name_field),
    )
    items = document["inlineData"]["dataItems"]
    for index, (feature, label_field) in enumerate(rows):
        items[index]["category"] = feature[label_field]
        items[index]["field1"] = feature[field_code]
    return True


def _typed_entries(collection: Mapping[str, Json], kind: str) -> List[Json]:
    return [entry for entry in collection.values() if isinstance(entry, dict) and entry.get("type") == kind]


def rewrite_story(
    document: Json,
    features: FeatureSet,
    buffer: float,
    node_actions: Mapping[str, Sequence[NodeAction]],
) -> None:
    published = document["publishedData"]
    nodes = published["nodes"]

    # later webmap nodes inherit their resource's extent
    for index, webmap_node in enumerate(_typed_entries(nodes, "webmap")):
        logger.debug(f"Modifying webmap node extent: {webmap_node.get('id', index)}")
        if index > 0:
            data = webmap_node.get("data") or {}
            for key in WEBMAP_VIEW_KEYS:
                data.pop(key, None)

    extent = features.local.extent
    if extent is None:
        logger.warning("⚠️ Local feature has no envelope; webmap resource extents left as published")
    else:
        for webmap_resource in _typed_entries(published["resources"], "webmap"):
            webmap_resource["data"]["extent"] = buffered_extent(extent, buffer)

    for node_id, node in nodes.items():
        actions = node_actions.get(node_id)
        if not actions:
            continue
        for action in actions:
            action.apply(node, features)


# ============================================================================
# RULE SET
# ============================================================================

def build_rules(features: FeatureSet, settings: Settings) -> List[SubstitutionRule]:
    """
    Build the rule set for one session. The mutations close over
    ``features``, so rules must be built after aggregation.
    """
    zip_code = features.local[settings.zip_id_field]
    node_actions = default_node_actions(settings.zip_placeholder, settings.zip_id_field)

    def content_webmap(document: Json) -> None:
        logger.debug("Modifying content web map JSON")
        set_layer_property(
            document, 5, ("layerDefinition", "definitionExpression"), f"ID = '{zip_code}'"
        )

    def locator_webmap(document: Json) -> None:
        logger.debug("Modifying locator web map JSON")
        set_layer_property(
            document, 2, ("customParameters", "where"), f"ZIP_STRING='{zip_code}'"
        )

    def chart(document: Json) -> None:
        rewrite_chart(document, features, id_field=settings.zip_id_field)

    def story(document: Json) -> None:
        rewrite_story(document, features, settings.extent_buffer, node_actions)

    return [
        SubstitutionRule(f"{settings.content_webmap_id}/data", content_webmap, "content web map"),
        SubstitutionRule(f"{settings.locator_webmap_id}/data", locator_webmap, "locator web map"),
        SubstitutionRule("chart_details", chart, "chart data"),
        SubstitutionRule(settings.story_data_pattern, story, "story data"),
    ]
