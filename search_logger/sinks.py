"""Sinks — destinations that each receive a formatted copy of a LogEvent."""

import logging
from typing import Protocol, runtime_checkable

import httpx

from search_logger.config import AppConfig
from search_logger.models import (
    DefinitionStatus,
    DeliveryState,
    ErrorReport,
    LogEvent,
    SinkResult,
    event_to_dict,
    report_to_dict,
)
from search_logger.outbound import request_with_deadline

logger = logging.getLogger(__name__)

BLUE = 3447003
RED = 15548997

LOGGER_AVATAR = "https://www.google.com/images/branding/googlelogo/1x/googlelogo_color_272x92dp.png"
ERROR_AVATAR = (
    "https://upload.wikimedia.org/wikipedia/commons/thumb/c/c7/"
    "Google_Chrome_error_icon.svg/1200px-Google_Chrome_error_icon.svg.png"
)


@runtime_checkable
class Sink(Protocol):
    name: str

    @property
    def enabled(self) -> bool: ...

    def send(self, event: LogEvent) -> SinkResult: ...

    def send_error(self, report: ErrorReport) -> SinkResult: ...


class ConsoleSink:
    """Writes one line per event to the process log. Always active."""

    name = "console"

    def __init__(self, log=None):
        self._log = log or logging.getLogger("search_logger.console")

    @property
    def enabled(self) -> bool:
        return True

    def send(self, event: LogEvent) -> SinkResult:
        line = format_console_line(event)
        self._log.info("%s", line)
        return SinkResult(self.name, DeliveryState.DELIVERED)

    def send_error(self, report: ErrorReport) -> SinkResult:
        self._log.error(
            "[%s] Request failed: %s (input: %s)",
            report.timestamp_local, report.message, report.input_received or "N/A",
        )
        return SinkResult(self.name, DeliveryState.DELIVERED)


def format_console_line(event: LogEvent) -> str:
    line = f'[{event.timestamp_local}] User Input Logged: "{event.search_query}"'
    if event.has_definition:
        line += f" | Definition ({event.definition_status.value}): {event.definition}"
    return line


class HttpSink:
    """Base for sinks that POST JSON to a configured URL.

    Without a URL the sink is disabled and every call is a no-op returning
    IDLE. Failures are logged and returned, never raised or retried.
    """

    name = "http"

    def __init__(self, url: str | None, timeout: float = 5.0, client_factory=None):
        self._url = url
        self._timeout = timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self._timeout))

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def send(self, event: LogEvent) -> SinkResult:
        if not self.enabled:
            return SinkResult(self.name, DeliveryState.IDLE, "disabled")
        return self._post(self.build_payload(event), what="event")

    def send_error(self, report: ErrorReport) -> SinkResult:
        if not self.enabled:
            return SinkResult(self.name, DeliveryState.IDLE, "disabled")
        return self._post(self.build_error_payload(report), what="error alert")

    def build_payload(self, event: LogEvent) -> dict:
        raise NotImplementedError

    def build_error_payload(self, report: ErrorReport) -> dict:
        raise NotImplementedError

    def _post(self, payload: dict, what: str) -> SinkResult:
        logger.debug("Sending %s to %s sink (%s)", what, self.name, DeliveryState.SENDING.value)
        try:
            response = request_with_deadline(
                self._client_factory, "POST", self._url, self._timeout, json=payload,
            )
        except httpx.TimeoutException as exc:
            logger.error("Timeout sending %s to %s sink: %s", what, self.name, exc)
            return SinkResult(self.name, DeliveryState.TIMED_OUT, str(exc))
        except httpx.HTTPError as exc:
            logger.error("Error sending %s to %s sink: %s", what, self.name, exc)
            return SinkResult(self.name, DeliveryState.FAILED, str(exc))

        if not response.is_success:
            logger.error(
                "Failed to send %s to %s sink (%d): %s",
                what, self.name, response.status_code, response.text,
            )
            return SinkResult(
                self.name, DeliveryState.FAILED, f"HTTP {response.status_code}"
            )

        logger.info("%s successfully sent to %s sink", what.capitalize(), self.name)
        return SinkResult(self.name, DeliveryState.DELIVERED)


class WebhookSink(HttpSink):
    """Posts Discord-compatible embed messages to a webhook URL."""

    name = "webhook"

    def build_payload(self, event: LogEvent) -> dict:
        failed = event.definition_status in (
            DefinitionStatus.NOT_FOUND, DefinitionStatus.FAILED,
        )
        fields = [
            {"name": "Logged At (Local)", "value": event.timestamp_local, "inline": True},
            {"name": "User IP", "value": event.client_ip, "inline": True},
            {"name": "Source Origin", "value": event.origin, "inline": False},
        ]
        if event.has_definition:
            fields.append({
                "name": "Definition",
                # Discord rejects field values over 1024 characters
                "value": event.definition[:1024],
                "inline": False,
            })

        return {
            "username": "User Input Logger",
            "avatar_url": LOGGER_AVATAR,
            "content": "A new user input has been logged!",
            "embeds": [
                {
                    "title": f'\U0001F4DD New Input: "{event.search_query}"',
                    "description": (
                        f"The user entered the following query: `{event.search_query}`"
                    ),
                    "color": RED if failed else BLUE,
                    "fields": fields,
                    "footer": {"text": "Powered by Search Logger"},
                    "timestamp": event.timestamp_iso,
                }
            ],
        }

    def build_error_payload(self, report: ErrorReport) -> dict:
        received = f"`{report.input_received}`" if report.input_received else "N/A"
        return {
            "username": "Error Notifier",
            "avatar_url": ERROR_AVATAR,
            "embeds": [
                {
                    "title": "\U0001F6A8 Request Handler Error \U0001F6A8",
                    "description": (
                        "An error occurred while processing an input request: "
                        f"`{report.message}`"
                    ),
                    "color": RED,
                    "fields": [
                        {"name": "Timestamp (Local)", "value": report.timestamp_local, "inline": True},
                        {"name": "Input Received", "value": received, "inline": False},
                        {
                            "name": "Stack Trace (partial)",
                            "value": f"```{report.stack_trace}```",
                            "inline": False,
                        },
                    ],
                    "footer": {"text": "Check the service logs for full details"},
                    "timestamp": report.timestamp_iso,
                }
            ],
        }


class RestSink(HttpSink):
    """Posts {level, timestamp, message, data} records to a logging endpoint."""

    name = "rest"

    def build_payload(self, event: LogEvent) -> dict:
        return {
            "level": "INFO",
            "timestamp": event.timestamp_iso,
            "message": f'User input logged: "{event.search_query}"',
            "data": event_to_dict(event),
        }

    def build_error_payload(self, report: ErrorReport) -> dict:
        return {
            "level": "ERROR",
            "timestamp": report.timestamp_iso,
            "message": f"Request handler error: {report.message}",
            "data": report_to_dict(report),
        }


def build_sinks(config: AppConfig, client_factory=None) -> list:
    """Create the sinks in dispatch order: console, webhook, REST.

    Warns once for every HTTP sink left without a target URL.
    """
    sinks = [
        ConsoleSink(),
        WebhookSink(config.webhook_url, config.request_timeout, client_factory),
        RestSink(config.rest_url, config.request_timeout, client_factory),
    ]
    for sink in sinks:
        if not sink.enabled:
            logger.warning(
                "No target URL configured for the %s sink; its messages will NOT be sent.",
                sink.name,
            )
    return sinks
