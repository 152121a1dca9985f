# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Response Interception Layer
---------------------------
Wraps ``transport.fetch`` so that JSON responses whose URL contains a
registered pattern are rewritten before any caller sees them.

- Rules are tried in registration order; the first pattern that is a
  substring of the URL wins.
- On a match the real response is cloned, its JSON deep-copied and handed
  to the rule, and a synthetic 200 JSON response carries the result.
- Everything else (including non-string URLs) is delegated unchanged.
- A rule that raises is not caught: the request fails visibly. A matched
  body that is not JSON raises TransportError.

The interceptor owns the primitive for its whole lifetime: ``install()``
once, ``teardown()`` to restore the real transport.
"""

import copy
import logging
from types import ModuleType
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from . import transport as default_transport
from .errors import TransportError
from .substitutions import SubstitutionRule
from .transport import FetchResponse

logger = logging.getLogger(__name__)

FetchFn = Callable[..., Awaitable[FetchResponse]]


class FetchInterceptor:
    """Owns the process-wide fetch entry point while installed."""

    def __init__(self, rules: Sequence[SubstitutionRule], transport_module: ModuleType = default_transport):
        self.rules: List[SubstitutionRule] = list(rules)
        self._transport = transport_module
        self._real_fetch: Optional[FetchFn] = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            logger.warning("⚠️ Fetch interceptor already installed; ignoring second install()")
            return

        current = self._transport.fetch
        if isinstance(getattr(current, "__self__", None), FetchInterceptor):
            raise RuntimeError("Another FetchInterceptor already owns transport.fetch")

        self._real_fetch = current
        self._transport.fetch = self.fetch
        self._installed = True
        logger.debug(f"Fetch interceptor installed with {len(self.rules)} rules")

    def teardown(self) -> None:
        if not self._installed:
            return
        self._transport.fetch = self._real_fetch
        self._real_fetch = None
        self._installed = False
        logger.debug("Fetch interceptor removed")

    def __enter__(self) -> "FetchInterceptor":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def match(self, url: Any) -> Optional[SubstitutionRule]:
        """First registered rule whose pattern occurs in ``url``."""
        if not isinstance(url, str):
            return None
        for rule in self.rules:
            if rule.match_pattern in url:
                return rule
        return None

    async def fetch(self, *args: Any, **kwargs: Any) -> FetchResponse:
        real_fetch = self._real_fetch
        if real_fetch is None:
            raise RuntimeError("Fetch interceptor is not installed")

        request_url = args[0] if args else kwargs.get("url")
        rule = self.match(request_url)
        if rule is None:
            return await real_fetch(*args, **kwargs)

        response = await real_fetch(*args, **kwargs)
        url = response.url or request_url
        try:
            original_json = await response.clone().json()
        except (ValueError, UnicodeDecodeError) as e:
            raise TransportError(
                f"Malformed JSON from {url}: {e}", status=response.status, url=url
            ) from e
        modified_json = copy.deepcopy(original_json)

        logger.debug(f"Applying substitution rule '{rule.name}' to {url}")
        rule.apply(modified_json)

        return FetchResponse.synthetic_json(modified_json, url=response.url)
