# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Centralized environment variable loader for Story Localizer.
All settings are read from the project root .env file when it exists,
otherwise from the process environment.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_root_env() -> bool:
    """
    Load environment variables from the root .env file.

    Variables already present in the process environment win over the
    file, so tests and shells can override individual settings.
    """
    # story_localizer/core/env_loader.py -> project root
    root_dir = Path(__file__).resolve().parent.parent.parent
    env_path = root_dir / ".env"

    if env_path.exists():
        logger.debug(f"Loading environment from: {env_path}")
        load_dotenv(env_path, override=False)
        return True

    logger.debug(f"Root .env file not found at: {env_path}, using system environment variables")
    return False


def get_env_var(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get an environment variable with optional default and validation.

    Args:
        key: Environment variable name
        default: Default value if not found
        required: If True, raises ValueError if not found

    Returns:
        Environment variable value

    Raises:
        ValueError: If required=True and variable not found
    """
    value = os.getenv(key, default)

    if required and not value:
        raise ValueError(f"Required environment variable '{key}' not found")

    return value


def get_float_env(key: str, default: float) -> float:
    """Read a float setting, falling back to the default on junk values."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Ignoring non-numeric {key}={raw!r}, using {default}")
        return default
