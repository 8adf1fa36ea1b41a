"""Tests for the dictionary lookup client."""

import httpx
import pytest

from search_logger.enrichment import DictionaryClient, extract_definition
from search_logger.models import DefinitionStatus

from conftest import DICTIONARY_ENTRY, transport_factory

BASE = "https://dict.example/api/v2/entries/en"


def make_client(handler):
    return DictionaryClient(BASE, timeout=5.0, client_factory=transport_factory(handler))


class TestLookupSuccess:
    def test_returns_first_definition_of_first_meaning(self):
        client = make_client(lambda request: httpx.Response(200, json=DICTIONARY_ENTRY))
        definition, status = client.lookup("serendipity")
        assert status is DefinitionStatus.SUCCESS
        assert definition == "An unsought, unintended, and/or unexpected discovery."

    def test_term_is_url_encoded(self):
        seen = []

        def handler(request):
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json=DICTIONARY_ENTRY)

        make_client(handler).lookup("ice cream/cone")
        assert seen == ["/api/v2/entries/en/ice%20cream%2Fcone"]

    def test_trailing_slash_in_base_url(self):
        client = DictionaryClient(BASE + "/")
        assert client.url_for("cat") == BASE + "/cat"


class TestLookupNotFound:
    def test_404_is_not_found(self):
        body = {"title": "No Definitions Found", "message": "Sorry pal"}
        client = make_client(lambda request: httpx.Response(404, json=body))
        definition, status = client.lookup("qwzx")
        assert status is DefinitionStatus.NOT_FOUND
        assert definition == 'No definition found for "qwzx".'

    def test_empty_list_is_not_found(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        definition, status = client.lookup("qwzx")
        assert status is DefinitionStatus.NOT_FOUND
        assert definition == 'No definition found for "qwzx".'


class TestLookupFailures:
    def test_server_error_embeds_status(self):
        client = make_client(lambda request: httpx.Response(503, text="down for maintenance"))
        definition, status = client.lookup("cat")
        assert status is DefinitionStatus.FAILED
        assert "503" in definition
        assert "maintenance" not in definition

    def test_invalid_json_is_parse_failure(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        definition, status = client.lookup("cat")
        assert status is DefinitionStatus.FAILED
        assert definition == 'Could not parse a definition for "cat".'

    def test_timeout_does_not_raise(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        definition, status = make_client(handler).lookup("cat")
        assert status is DefinitionStatus.FAILED
        assert definition == "Definition lookup failed: timed out"

    def test_network_error_does_not_raise(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        definition, status = make_client(handler).lookup("cat")
        assert status is DefinitionStatus.FAILED
        assert "connection refused" in definition


class TestExtractDefinition:
    @pytest.mark.parametrize("entries", [
        [{"meanings": []}],
        [{"meanings": [{"definitions": []}]}],
        [{"word": "cat"}],
        {"title": "odd"},
        "text",
        [{"meanings": [{"definitions": [{"definition": 7}]}]}],
    ])
    def test_unexpected_shapes_fail(self, entries):
        definition, status = extract_definition("cat", entries)
        assert status is DefinitionStatus.FAILED
        assert definition == 'Could not parse a definition for "cat".'
