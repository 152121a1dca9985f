# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Error taxonomy for the Story Localizer.

"Not found" is not an error: lookups return ``None`` when nothing matches.
"""

from typing import Optional


class StoryLocalizerError(Exception):
    """Base class for all Story Localizer errors."""


class TransportError(StoryLocalizerError):
    """A request failed: network error, non-2xx status or unparseable body."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class ValidationError(StoryLocalizerError, ValueError):
    """Malformed coordinate or area code input."""


class AggregationError(StoryLocalizerError):
    """One or more of the local/regional/national features could not be produced."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MutationError(StoryLocalizerError):
    """A substitution rule could not rewrite the JSON it was given."""

    def __init__(self, message: str, rule: Optional[str] = None):
        super().__init__(message)
        self.rule = rule
