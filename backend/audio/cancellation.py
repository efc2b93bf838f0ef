"""
Cooperative cancellation for CPU-bound audio work.

Responsibilities:
- Carry a cancel request from the caller (often an asyncio task) into a
  worker thread
- Provide a single check point API for long-running loops

Non-responsibilities:
- NO timers
- NO retry logic
- NO decisions about what happens after cancellation

Cancellation is NOT a failure: it is raised as OperationCancelled and must
never be wrapped into an error result.
"""

from __future__ import annotations

import threading


class OperationCancelled(Exception):
    """
    Raised at a cancellation point once the owning token has been cancelled.

    Distinct from every failure type so callers can tell "stopped on request"
    apart from "broke".
    """


class CancellationToken:
    """
    Thread-safe, one-shot cancel flag.

    Lifecycle:
    1. Caller creates a token and hands it to the worker
    2. Worker calls raise_if_cancelled() between units of work
    3. Caller calls cancel() (idempotent) from any thread
    4. Worker's next check raises OperationCancelled
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """
        Request cancellation.

        Idempotent: the first reason wins.
        """
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self._reason or "cancelled")
