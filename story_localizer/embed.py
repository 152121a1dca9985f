# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Story embed loader.

Stands in for the third-party story embed script: it knows nothing about
locations and simply loads the published story document plus the web maps
and charts it references, all through ``transport.fetch``. Whatever
interceptor is installed at that point sees every one of these requests.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from . import transport
from .core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class StoryDocument:
    """The story and its referenced resources as the embed received them."""
    story: Dict[str, Any]
    webmaps: Dict[str, Any] = field(default_factory=dict)
    charts: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {"story": self.story, "webmaps": self.webmaps, "charts": self.charts}


class StoryEmbed:
    """Loads one published story the way the embed script does."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def story_url(self) -> str:
        return f"{self.settings.story_base_url}{self.settings.story_data_pattern}"

    def webmap_url(self, item_id: str) -> str:
        return f"{self.settings.item_data_base_url}/{item_id}/data"

    def chart_url(self, resource_id: str) -> str:
        return (
            f"{self.settings.story_base_url}/embed/view/{self.settings.story_id}"
            f"/resources/{resource_id}/chart_details"
        )

    async def load(self) -> StoryDocument:
        logger.debug(f"Loading story {self.settings.story_id}")
        story = await transport.fetch_json(self.story_url)

        resources = ((story.get("publishedData") or {}).get("resources") or {})
        webmap_ids: List[str] = []
        chart_ids: List[str] = []
        for resource_id, resource in resources.items():
            kind = resource.get("type")
            data = resource.get("data") or {}
            if kind == "webmap" and data.get("itemId"):
                webmap_ids.append(data["itemId"])
            elif kind == "chart":
                chart_ids.append(resource_id)

        requests: List[Tuple[str, str, str]] = (
            [("webmap", item_id, self.webmap_url(item_id)) for item_id in dict.fromkeys(webmap_ids)]
            + [("chart", resource_id, self.chart_url(resource_id)) for resource_id in chart_ids]
        )
        payloads = await asyncio.gather(*[transport.fetch_json(url) for _, _, url in requests])

        document = StoryDocument(story=story)
        for (kind, key, _), payload in zip(requests, payloads):
            target = document.webmaps if kind == "webmap" else document.charts
            target[key] = payload

        logger.debug(
            f"Story loaded: {len(document.webmaps)} web maps, {len(document.charts)} charts"
        )
        return document
