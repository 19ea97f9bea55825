"""Polling of submitted reports until they reach a terminal state."""

import logging
import threading
import time
from typing import Callable, Optional

from bulk_reports.errors import Aborted, ReportTimeout
from bulk_reports.schemas.report import ReportHandle
from bulk_reports.services.reports_api import ReportsApi

logger = logging.getLogger(__name__)

# sleeper(seconds, cancel_event) -> None; must return early once cancel_event is set
Sleeper = Callable[[float, Optional[threading.Event]], None]


def cancellable_sleep(seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
    """Sleep for seconds, waking immediately if cancel_event is set."""
    if cancel_event is None:
        time.sleep(seconds)
    else:
        cancel_event.wait(seconds)


class ReportPoller:
    """Polls report status at a fixed interval until done, timed out or aborted."""

    def __init__(
        self,
        api: ReportsApi,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Sleeper = cancellable_sleep,
    ):
        """
        Initialize the poller.

        Args:
            api: Reports API used for status refreshes
            clock: Monotonic clock in seconds
            sleeper: Sleep function honoring a cancellation event
        """
        self.api = api
        self.clock = clock
        self.sleeper = sleeper

    def await_completion(
        self,
        handle: ReportHandle,
        poll_interval: float = 5.0,
        timeout: float = 300.0,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReportHandle:
        """
        Wait for a report to reach DONE, CANCELLED or FATAL.

        Status refreshes are strictly sequential and spaced by exactly
        poll_interval. CANCELLED and FATAL are returned, not raised.

        Args:
            handle: Handle returned by submit
            poll_interval: Seconds between status refreshes
            timeout: Seconds from now before giving up
            cancel_event: Set by the caller to stop waiting

        Returns:
            Terminal ReportHandle

        Raises:
            ReportTimeout: If the deadline passes first
            Aborted: If cancel_event is set
            RemoteUnavailable: If a status refresh fails
        """
        started = self.clock()
        deadline = started + timeout
        polls = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Stopped waiting for report {handle.report_id} after {polls} polls")
                raise Aborted(handle.report_id, handle.status.value)

            if handle.status.is_terminal:
                logger.info(f"Report {handle.report_id} reached {handle.status.value} after {polls} polls")
                return handle

            now = self.clock()
            if now >= deadline:
                logger.warning(f"Report {handle.report_id} timed out in {handle.status.value}")
                raise ReportTimeout(handle.report_id, now - started, handle.status.value)

            self.sleeper(poll_interval, cancel_event)

            # Do not issue another request once the caller has given up
            if cancel_event is not None and cancel_event.is_set():
                continue

            handle = self.api.get_status(handle.report_id)
            polls += 1
            logger.debug(f"Report {handle.report_id} poll {polls}: {handle.status.value}")
