"""Event, outcome and delivery-result models."""

import datetime
import traceback
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

STACK_TRACE_LIMIT = 1000


class DefinitionStatus(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    SKIPPED = "skipped"


class DeliveryState(Enum):
    IDLE = "idle"
    SENDING = "sending"
    DELIVERED = "delivered"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RequestContext:
    client_ip: str = "N/A"
    user_agent: str = "unknown"
    origin: str = "N/A"


@dataclass(frozen=True)
class LogEvent:
    search_query: str
    definition: Optional[str] = None
    definition_status: DefinitionStatus = DefinitionStatus.SKIPPED
    client_ip: str = "N/A"
    user_agent: str = "unknown"
    origin: str = "N/A"
    timestamp_local: str = ""
    timestamp_iso: str = ""

    def __post_init__(self):
        if not isinstance(self.search_query, str) or not self.search_query.strip():
            raise ValueError("search_query must be a non-empty string")
        if self.search_query != self.search_query.strip():
            raise ValueError("search_query must be trimmed")

    @property
    def has_definition(self) -> bool:
        return self.definition is not None


@dataclass(frozen=True)
class ErrorReport:
    """What the exception path ships to error-capable sinks."""

    message: str
    timestamp_local: str
    timestamp_iso: str
    input_received: Optional[str] = None
    stack_trace: str = "N/A"


@dataclass(frozen=True)
class DispatchOutcome:
    status_code: int
    body: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SinkResult:
    sink: str
    state: DeliveryState
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.state is DeliveryState.DELIVERED


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def format_iso(moment: datetime.datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix, e.g. 2024-01-15T10:30:00.000Z."""
    utc = moment.astimezone(datetime.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_timezone(name) -> datetime.tzinfo:
    """Return the tzinfo for an IANA name, raising ValueError if it is unknown."""
    if isinstance(name, datetime.tzinfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError) as exc:
        raise ValueError(f"Unknown timezone {name!r}") from exc


def format_local(moment: datetime.datetime, tz) -> str:
    """US-style local time, e.g. 1/15/2024, 5:30:00 PM. *tz* is a name or tzinfo."""
    local = moment.astimezone(resolve_timezone(tz))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {suffix}"
    )


def truncate_trace(exc: BaseException, limit: int = STACK_TRACE_LIMIT) -> str:
    """Format the traceback of *exc*, cut to *limit* characters plus '...'."""
    text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    if not text:
        return "N/A"
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def event_to_dict(event: LogEvent) -> dict:
    """Convert a LogEvent to a plain, JSON-serializable dictionary."""
    data = asdict(event)
    data["definition_status"] = event.definition_status.value
    return data


def report_to_dict(report: ErrorReport) -> dict:
    return asdict(report)
