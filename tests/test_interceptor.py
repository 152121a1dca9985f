"""
Tests for the fetch interception layer
"""

import json
from unittest.mock import AsyncMock

import pytest

from story_localizer import transport
from story_localizer.errors import MutationError, TransportError
from story_localizer.interceptor import FetchInterceptor
from story_localizer.substitutions import SubstitutionRule
from story_localizer.transport import FetchResponse


def json_response(payload, status=200, url=""):
    return FetchResponse(json.dumps(payload).encode("utf-8"), status=status,
                         headers={"Content-Type": "text/plain"}, url=url)


def set_key(key, value):
    def mutate(document):
        document[key] = value
    return mutate


@pytest.fixture
def real_fetch(monkeypatch):
    """AsyncMock standing in for the real primitive"""
    mock = AsyncMock()
    monkeypatch.setattr(transport, "fetch", mock)
    return mock


# ============================================================================
# Installation lifecycle
# ============================================================================

class TestLifecycle:
    """Test suite for install / teardown"""

    def test_install_replaces_and_teardown_restores(self, real_fetch):
        interceptor = FetchInterceptor([])

        interceptor.install()
        assert interceptor.installed
        assert transport.fetch == interceptor.fetch

        interceptor.teardown()
        assert not interceptor.installed
        assert transport.fetch is real_fetch

    @pytest.mark.asyncio
    async def test_second_install_does_not_double_wrap(self, real_fetch):
        real_fetch.return_value = json_response({"n": 0}, url="https://x.test/data")
        interceptor = FetchInterceptor([SubstitutionRule("data", set_key("n", 1), "one")])

        interceptor.install()
        interceptor.install()
        response = await transport.fetch("https://x.test/data")

        assert await response.json() == {"n": 1}
        assert real_fetch.await_count == 1

        interceptor.teardown()
        assert transport.fetch is real_fetch

    def test_competing_interceptor_is_rejected(self, real_fetch):
        first = FetchInterceptor([])
        second = FetchInterceptor([])
        first.install()
        try:
            with pytest.raises(RuntimeError):
                second.install()
            assert not second.installed
        finally:
            first.teardown()
        assert transport.fetch is real_fetch

    def test_teardown_without_install_is_noop(self, real_fetch):
        FetchInterceptor([]).teardown()
        assert transport.fetch is real_fetch

    def test_context_manager(self, real_fetch):
        with FetchInterceptor([]) as interceptor:
            assert transport.fetch == interceptor.fetch
        assert transport.fetch is real_fetch

    @pytest.mark.asyncio
    async def test_fetch_while_not_installed_raises(self):
        with pytest.raises(RuntimeError):
            await FetchInterceptor([]).fetch("https://x.test")


# ============================================================================
# Pass-through
# ============================================================================

class TestPassThrough:
    """Test suite for requests no rule matches"""

    @pytest.mark.asyncio
    async def test_non_matching_response_is_returned_unchanged(self, real_fetch):
        original = json_response({"keep": True}, status=404)
        real_fetch.return_value = original

        with FetchInterceptor([SubstitutionRule("chart_details", set_key("x", 1))]):
            response = await transport.fetch("https://x.test/other", params={"f": "json"}, timeout=5)

        assert response is original
        real_fetch.assert_awaited_once_with("https://x.test/other", params={"f": "json"}, timeout=5)
        assert await response.read() == b'{"keep": true}'

    @pytest.mark.asyncio
    async def test_non_string_url_is_delegated(self, real_fetch):
        original = json_response({"a": 1})
        real_fetch.return_value = original
        request = object()

        with FetchInterceptor([SubstitutionRule("", set_key("a", 2))]):
            response = await transport.fetch(request)

        assert response is original
        real_fetch.assert_awaited_once_with(request)

    @pytest.mark.asyncio
    async def test_url_keyword_is_matched(self, real_fetch):
        real_fetch.return_value = json_response({"a": 1})

        with FetchInterceptor([SubstitutionRule("/data", set_key("a", 2))]):
            response = await transport.fetch(url="https://x.test/data")

        assert await response.json() == {"a": 2}


# ============================================================================
# Rewriting
# ============================================================================

class TestRewriting:
    """Test suite for matched requests"""

    @pytest.mark.asyncio
    async def test_matched_response_is_synthetic_200_json(self, real_fetch):
        real_fetch.return_value = json_response({"a": 1}, status=203, url="https://x.test/item/data")

        with FetchInterceptor([SubstitutionRule("item/data", set_key("b", 2))]):
            response = await transport.fetch("https://x.test/item/data")

        assert response.status == 200
        assert response.headers["Content-Type"] == "application/json"
        assert response.url == "https://x.test/item/data"
        assert await response.json() == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_original_document_is_not_mutated(self, real_fetch):
        original = json_response({"nested": {"value": "original"}})
        real_fetch.return_value = original

        def mutate(document):
            document["nested"]["value"] = "changed"

        with FetchInterceptor([SubstitutionRule("data", mutate)]):
            response = await transport.fetch("https://x.test/data")

        assert await response.json() == {"nested": {"value": "changed"}}
        # the real response was cloned, never consumed or edited
        assert not original.body_used
        assert await original.json() == {"nested": {"value": "original"}}

    @pytest.mark.asyncio
    async def test_first_registered_rule_wins(self, real_fetch):
        real_fetch.return_value = json_response({})
        rules = [
            SubstitutionRule("/embed/view/", set_key("rule", "first"), "first"),
            SubstitutionRule("/embed/view/abc/data", set_key("rule", "second"), "second"),
        ]

        with FetchInterceptor(rules) as interceptor:
            assert interceptor.match("https://x.test/embed/view/abc/data").name == "first"
            response = await transport.fetch("https://x.test/embed/view/abc/data")

        assert await response.json() == {"rule": "first"}

    @pytest.mark.asyncio
    async def test_failing_rule_propagates(self, real_fetch):
        real_fetch.return_value = json_response({"operationalLayers": []})

        def mutate(document):
            document["operationalLayers"][5]["layerDefinition"] = {}

        with FetchInterceptor([SubstitutionRule("data", mutate, "content web map")]):
            with pytest.raises(MutationError) as exc_info:
                await transport.fetch("https://x.test/data")

        assert exc_info.value.rule == "content web map"
        assert isinstance(exc_info.value.__cause__, IndexError)

    @pytest.mark.asyncio
    async def test_non_json_matched_body_is_transport_error(self, real_fetch):
        real_fetch.return_value = FetchResponse(b"Not Found", status=404, url="https://x.test/data")

        with FetchInterceptor([SubstitutionRule("data", set_key("a", 1))]):
            with pytest.raises(TransportError) as exc_info:
                await transport.fetch("https://x.test/data")

        assert exc_info.value.status == 404
        assert exc_info.value.url == "https://x.test/data"
