"""Outbound HTTP calls bounded by a total deadline.

httpx timeouts apply to each phase (connect, write, every read) on its own,
so a peer that drips its body can keep a call alive far past the timeout.
``request_with_deadline`` runs the call on a worker thread that checks the
deadline between body chunks, and the caller stops waiting once the
deadline passes.
"""

import json
import queue
import threading
import time
from dataclasses import dataclass

import httpx


class DeadlineExceeded(httpx.TimeoutException):
    """The whole call, body included, took longer than its deadline."""


@dataclass(frozen=True)
class Reply:
    status_code: int
    content: bytes = b""
    encoding: str = "utf-8"

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    def json(self):
        return json.loads(self.text)


def request_with_deadline(client_factory, method: str, url: str, timeout: float, **kwargs) -> Reply:
    """Send one request and read its body, all within *timeout* seconds.

    Raises ``DeadlineExceeded`` when the deadline passes, and re-raises any
    ``httpx.HTTPError`` from the worker.
    """
    deadline = time.monotonic() + timeout
    results: queue.Queue = queue.Queue(maxsize=1)

    def worker():
        try:
            results.put((_read_reply(client_factory, method, url, deadline, kwargs), None))
        except Exception as exc:
            results.put((None, exc))

    threading.Thread(target=worker, name=f"http-{method.lower()}", daemon=True).start()

    try:
        reply, error = results.get(timeout=max(deadline - time.monotonic(), 0))
    except queue.Empty:
        raise DeadlineExceeded(f"{method} {url} exceeded {timeout:g}s deadline") from None

    if error is not None:
        raise error
    return reply


def _read_reply(client_factory, method, url, deadline, kwargs) -> Reply:
    # The client is owned by this thread; an abandoned call ends at the next chunk
    with client_factory() as client:
        with client.stream(method, url, **kwargs) as response:
            chunks = []
            for chunk in response.iter_bytes():
                if time.monotonic() > deadline:
                    raise DeadlineExceeded(f"{method} {url} body still arriving at deadline")
                chunks.append(chunk)
            return Reply(
                status_code=response.status_code,
                content=b"".join(chunks),
                encoding=response.charset_encoding or "utf-8",
            )
