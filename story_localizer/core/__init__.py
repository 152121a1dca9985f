# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core module initialization.
"""

from .config import settings, Settings
from .app_logging import setup_logging, get_logger, enable_debug_mode

__all__ = ["settings", "Settings", "setup_logging", "get_logger", "enable_debug_mode"]
