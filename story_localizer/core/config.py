# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core configuration for the Story Localizer.
"""
import os
from typing import List

from .env_loader import load_root_env, get_env_var, get_float_env

# Ensure environment is loaded
load_root_env()

DEMOGRAPHICS_SERVICE = (
    "https://services8.arcgis.com/peDZJliSvYims39Q/ArcGIS/rest/services/"
    "USA_Latest_Esri_Demographics/FeatureServer"
)

DEFAULT_RANDOM_ZIPS = [
    '33109', '94027', '90210', '11962', '31561', '98039', '96754', '99501', '20817',
    '30327', '97034', '75205', '81435', '78704', '55406', '68104', '58201', '71048',
]


class Settings:
    """Application settings using simple environment variable access."""

    def __init__(self):
        # App Configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Story embed
        self.story_id = os.getenv("STORY_ID", "4961e406d6364e198c71cdf3de491285")
        self.story_base_url = os.getenv("STORY_BASE_URL", "https://storymaps.arcgis.com")
        self.content_webmap_id = os.getenv("CONTENT_WEBMAP_ID", "0bd47aab81d448a88d0b706c261b3931")
        self.locator_webmap_id = os.getenv("LOCATOR_WEBMAP_ID", "a522e87aaa1747b0af699d3b9fe7b21c")
        self.item_data_base_url = os.getenv(
            "ITEM_DATA_BASE_URL", "https://www.arcgis.com/sharing/rest/content/items"
        )

        # Demographic feature services (local / regional / national scopes)
        self.zip_service_url = os.getenv("ZIP_SERVICE_URL", f"{DEMOGRAPHICS_SERVICE}/1")
        self.state_service_url = os.getenv("STATE_SERVICE_URL", f"{DEMOGRAPHICS_SERVICE}/2")
        self.nation_service_url = os.getenv("NATION_SERVICE_URL", f"{DEMOGRAPHICS_SERVICE}/0")
        self.zip_id_field = "ID"
        self.region_id_field = "ST_ABBREV"
        self.nation_id_value = "US"

        # Geocoding / address search
        self.geocode_url = os.getenv(
            "GEOCODE_URL",
            "https://geocode-api.arcgis.com/arcgis/rest/services/World/GeocodeServer/findAddressCandidates",
        )
        self.arcgis_api_key = get_env_var("ARCGIS_API_KEY", "")
        self.search_country_code = os.getenv("SEARCH_COUNTRY_CODE", "USA")
        self.search_max_locations = int(os.getenv("SEARCH_MAX_LOCATIONS", "8"))
        self.search_min_length = int(os.getenv("SEARCH_MIN_LENGTH", "3"))
        self.search_debounce_seconds = get_float_env("SEARCH_DEBOUNCE_SECONDS", 0.3)

        # Device geolocation stand-in
        self.ip_geolocation_url = os.getenv("IP_GEOLOCATION_URL", "https://ipapi.co/json/")
        self.geolocation_timeout = get_float_env("GEOLOCATION_TIMEOUT", 10.0)

        # Networking
        self.request_timeout = get_float_env("REQUEST_TIMEOUT", 30.0)

        # Substitution rules
        self.extent_buffer = get_float_env("EXTENT_BUFFER", 0.05)
        self.zip_placeholder = "[ZIP code]"

        # Debug mode: delay before following a redirect so messages can be read
        self.debug_message_duration = get_float_env("DEBUG_MESSAGE_DURATION", 3.0)

        zips_env = os.getenv("RANDOM_ZIPS", "")
        self.random_zips: List[str] = (
            [z.strip() for z in zips_env.split(",") if z.strip()] or list(DEFAULT_RANDOM_ZIPS)
        )

    @property
    def story_data_pattern(self) -> str:
        """URL fragment identifying the story document request."""
        return f"/embed/view/{self.story_id}/data"


# Global settings instance
settings = Settings()
