"""Dictionary lookup client used to enrich a search term with a definition."""

import logging
from urllib.parse import quote

import httpx

from search_logger.models import DefinitionStatus
from search_logger.outbound import request_with_deadline

logger = logging.getLogger(__name__)


class DictionaryClient:
    """Looks up the first definition of a term on a dictionaryapi.dev-style service.

    The lookup never raises: every failure is folded into a descriptive
    string and a ``DefinitionStatus``. ``client_factory`` exists so tests
    can pass an ``httpx.Client`` backed by a ``MockTransport``.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client_factory=None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self._timeout))

    def url_for(self, term: str) -> str:
        return f"{self._base_url}/{quote(term, safe='')}"

    def lookup(self, term: str) -> tuple[str, DefinitionStatus]:
        url = self.url_for(term)
        try:
            response = request_with_deadline(
                self._client_factory, "GET", url, self._timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("Dictionary lookup for %r timed out: %s", term, exc)
            return _failure_text(exc), DefinitionStatus.FAILED
        except httpx.HTTPError as exc:
            logger.warning("Dictionary lookup for %r failed: %s", term, exc)
            return _failure_text(exc), DefinitionStatus.FAILED

        if response.status_code == 404:
            logger.info("No dictionary entry for %r", term)
            return _not_found_text(term), DefinitionStatus.NOT_FOUND

        if not response.is_success:
            logger.error(
                "Dictionary lookup for %r returned HTTP %d: %s",
                term, response.status_code, response.text,
            )
            return (
                f"Definition lookup failed with HTTP {response.status_code}.",
                DefinitionStatus.FAILED,
            )

        try:
            entries = response.json()
        except ValueError:
            logger.error("Dictionary response for %r is not valid JSON", term)
            return _parse_failure_text(term), DefinitionStatus.FAILED

        return extract_definition(term, entries)


def extract_definition(term: str, entries) -> tuple[str, DefinitionStatus]:
    """Pick the first definition of the first meaning of the first entry."""
    if isinstance(entries, list) and not entries:
        return _not_found_text(term), DefinitionStatus.NOT_FOUND

    try:
        definition = entries[0]["meanings"][0]["definitions"][0]["definition"]
    except (KeyError, IndexError, TypeError):
        logger.error("Unexpected dictionary response shape for %r", term)
        return _parse_failure_text(term), DefinitionStatus.FAILED

    if not isinstance(definition, str):
        return _parse_failure_text(term), DefinitionStatus.FAILED
    return definition, DefinitionStatus.SUCCESS


def _not_found_text(term: str) -> str:
    return f'No definition found for "{term}".'


def _parse_failure_text(term: str) -> str:
    return f'Could not parse a definition for "{term}".'


def _failure_text(exc: Exception) -> str:
    return f"Definition lookup failed: {str(exc) or type(exc).__name__}"
