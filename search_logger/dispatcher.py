"""Dispatcher — validates, enriches and fans one request out to the sinks."""

import logging
import threading

from search_logger.models import (
    DefinitionStatus,
    DispatchOutcome,
    ErrorReport,
    LogEvent,
    RequestContext,
    format_iso,
    format_local,
    resolve_timezone,
    truncate_trace,
    utc_now,
)

logger = logging.getLogger(__name__)

INVALID_INPUT_MESSAGE = "No valid input provided."
SUCCESS_MESSAGE = "Input logged successfully; notifications dispatched."


def normalize_input(raw) -> str | None:
    """Return the trimmed term, or None when *raw* is not usable input."""
    if not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    return trimmed or None


class Dispatcher:
    """Handles one accepted request at a time without waiting on sink I/O.

    Enrichment is the only call the request blocks on. Each sink call runs
    in its own daemon thread, launched in sink order and never joined on
    the request path; ``drain`` exists for shutdown and tests.
    """

    def __init__(
        self,
        sinks,
        enrichment=None,
        local_timezone: str = "Asia/Jakarta",
        clock=None,
    ):
        self._sinks = list(sinks)
        self._enrichment = enrichment
        self._local_timezone = resolve_timezone(local_timezone)
        self._clock = clock or utc_now
        self._threads: set[threading.Thread] = set()
        self._lock = threading.Lock()

    @property
    def sinks(self) -> list:
        return list(self._sinks)

    @property
    def enrichment_enabled(self) -> bool:
        return self._enrichment is not None

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._threads)

    def handle(self, raw_input, context: RequestContext | None = None) -> DispatchOutcome:
        """Validate, enrich, build the event, launch the sinks and respond.

        Unexpected exceptions propagate to the caller, which owns the 500 path.
        """
        term = normalize_input(raw_input)
        if term is None:
            return DispatchOutcome(400, {"message": INVALID_INPUT_MESSAGE})

        if self._enrichment is not None:
            definition, status = self._enrichment.lookup(term)
        else:
            definition, status = None, DefinitionStatus.SKIPPED

        event = self.build_event(term, definition, status, context or RequestContext())
        self.dispatch(event)

        body = {"message": SUCCESS_MESSAGE, "input": event.search_query}
        if self.enrichment_enabled:
            body["definition"] = event.definition
        return DispatchOutcome(200, body)

    def build_event(self, term, definition, status, context: RequestContext) -> LogEvent:
        now = self._clock()
        return LogEvent(
            search_query=term,
            definition=definition,
            definition_status=status,
            client_ip=context.client_ip,
            user_agent=context.user_agent,
            origin=context.origin,
            timestamp_local=format_local(now, self._local_timezone),
            timestamp_iso=format_iso(now),
        )

    def dispatch(self, event: LogEvent) -> None:
        """Launch every sink for *event* and return immediately."""
        for sink in self._sinks:
            self._launch(sink.name, sink.send, event)

    def report_failure(self, exc: BaseException, raw_input=None) -> None:
        """Best-effort: ship an ErrorReport for *exc* to every sink. Never raises."""
        try:
            now = self._clock()
            report = ErrorReport(
                message=str(exc),
                timestamp_local=format_local(now, self._local_timezone),
                timestamp_iso=format_iso(now),
                input_received=raw_input if isinstance(raw_input, str) else None,
                stack_trace=truncate_trace(exc),
            )
        except Exception:
            logger.exception("Failed to prepare error alert")
            return

        for sink in self._sinks:
            try:
                self._launch(sink.name, sink.send_error, report)
            except Exception:
                logger.exception("Failed to launch error alert for %s sink", sink.name)

    def drain(self, timeout: float | None = None) -> bool:
        """Join in-flight sink threads. Returns True if none are left running."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        return self.in_flight == 0

    def _launch(self, name: str, func, payload) -> None:
        thread = threading.Thread(
            target=self._run_sink,
            args=(name, func, payload),
            name=f"sink-{name}",
            daemon=True,
        )
        with self._lock:
            self._threads.add(thread)
        try:
            thread.start()
        except RuntimeError:
            with self._lock:
                self._threads.discard(thread)
            raise

    def _run_sink(self, name: str, func, payload) -> None:
        try:
            result = func(payload)
            logger.debug("Sink %s finished: %s", name, result.state.value)
        except Exception:
            logger.exception("Sink %s raised while sending", name)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())
