"""Background worker running report lifecycles."""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bulk_reports.config import settings
from bulk_reports.errors import Aborted, ReportError
from bulk_reports.schemas.report import ReportHandle, ReportRequest, kind_value
from bulk_reports.schemas.run import RunRecord
from bulk_reports.services.orchestrator import ReportOrchestrator

logger = logging.getLogger(__name__)


class ReportWorker:
    """Runs run_to_completion for each started run on its own thread.

    Each run gets its own stop event, so aborting one run only stops its
    polling loop. Aborting never cancels the remote report. Thread and stop
    event are released when a run finishes; only the newest max_finished_runs
    finished records are kept.
    """

    FINISHED = ("done", "failed", "aborted")

    def __init__(self, orchestrator: ReportOrchestrator, max_finished_runs: Optional[int] = None):
        """Initialize worker."""
        self.orchestrator = orchestrator
        self.max_finished_runs = (
            max_finished_runs if max_finished_runs is not None else settings.REPORT_RUN_RETENTION
        )
        self._runs: Dict[uuid.UUID, RunRecord] = {}
        self._stop_events: Dict[uuid.UUID, threading.Event] = {}
        self._threads: Dict[uuid.UUID, threading.Thread] = {}
        self._lock = threading.Lock()
        self._stopped = False

    def start_run(
        self,
        request: ReportRequest,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> uuid.UUID:
        """
        Start a report run in the background.

        Args:
            request: Report request
            poll_interval: Seconds between status refreshes
            timeout: Seconds to wait for completion

        Returns:
            run_id of the new run

        Raises:
            RuntimeError: If the worker has been stopped
        """
        now = datetime.now(timezone.utc)
        run_id = uuid.uuid4()
        record = RunRecord(
            run_id=run_id,
            kind=kind_value(request.kind),
            status="queued",
            created_at=now,
            updated_at=now,
        )
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self.process_run,
            args=(run_id, request, poll_interval, timeout, stop_event),
            name=f"report-run-{run_id}",
            daemon=True,
        )

        with self._lock:
            if self._stopped:
                raise RuntimeError("Worker is stopped")
            self._runs[run_id] = record
            self._stop_events[run_id] = stop_event
            self._threads[run_id] = thread

        thread.start()
        logger.info(f"Started run {run_id} ({record.kind})")
        return run_id

    def _update(self, run_id: uuid.UUID, **changes) -> None:
        with self._lock:
            record = self._runs[run_id]
            for name, value in changes.items():
                setattr(record, name, value)
            record.updated_at = datetime.now(timezone.utc)

    def process_run(
        self,
        run_id: uuid.UUID,
        request: ReportRequest,
        poll_interval: Optional[float],
        timeout: Optional[float],
        stop_event: threading.Event,
    ) -> None:
        """Execute a single run and record its outcome."""
        self._update(run_id, status="running")

        def on_submitted(handle: ReportHandle) -> None:
            self._update(run_id, report_id=handle.report_id)

        try:
            result = self.orchestrator.run_to_completion(
                request,
                poll_interval=poll_interval,
                timeout=timeout,
                cancel_event=stop_event,
                on_submitted=on_submitted,
            )
        except Aborted as e:
            self._update(run_id, status="aborted", error=str(e), error_type=type(e).__name__)
            logger.info(f"Run {run_id} aborted")
        except ReportError as e:
            self._update(run_id, status="failed", error=str(e), error_type=type(e).__name__)
            logger.error(f"Run {run_id} failed: {e}")
        except Exception as e:
            self._update(run_id, status="failed", error=str(e), error_type=type(e).__name__)
            logger.error(f"Run {run_id} crashed: {e}", exc_info=True)
        else:
            self._update(run_id, status="done", result=result)
            logger.info(f"Run {run_id} completed successfully")
        finally:
            self._release(run_id)

    def _release(self, run_id: uuid.UUID) -> None:
        with self._lock:
            self._stop_events.pop(run_id, None)
            self._threads.pop(run_id, None)

            finished = [rid for rid, r in self._runs.items() if r.status in self.FINISHED]
            excess = len(finished) - self.max_finished_runs
            for rid in finished[:max(excess, 0)]:
                del self._runs[rid]
        if excess > 0:
            logger.debug(f"Evicted {excess} finished runs")

    def forget_run(self, run_id: uuid.UUID) -> bool:
        """
        Drop the record of a finished run.

        Args:
            run_id: Run to forget

        Returns:
            True if the run was finished and is now gone, False if it is
            unknown or still running
        """
        with self._lock:
            record = self._runs.get(run_id)
            if record is None or record.status not in self.FINISHED:
                return False
            del self._runs[run_id]
        logger.info(f"Forgot run {run_id}")
        return True

    def get_run(self, run_id: uuid.UUID) -> Optional[RunRecord]:
        """Return a snapshot of a run, or None if unknown."""
        with self._lock:
            record = self._runs.get(run_id)
            return record.model_copy() if record else None

    def list_runs(self) -> List[RunRecord]:
        """Return snapshots of all runs, oldest first."""
        with self._lock:
            records = [r.model_copy() for r in self._runs.values()]
        return sorted(records, key=lambda r: r.created_at)

    def abort_run(self, run_id: uuid.UUID) -> bool:
        """
        Stop waiting for a run.

        Args:
            run_id: Run to abort

        Returns:
            True if the run exists, False otherwise. Aborting a finished
            run is a no-op.
        """
        with self._lock:
            if run_id not in self._runs:
                return False
            stop_event = self._stop_events.get(run_id)
        if stop_event is None:
            return True
        stop_event.set()
        logger.info(f"Abort requested for run {run_id}")
        return True

    def wait(self, run_id: uuid.UUID, timeout: Optional[float] = None) -> Optional[RunRecord]:
        """Block until a run's thread finishes (or timeout), then return its snapshot."""
        with self._lock:
            thread = self._threads.get(run_id)
        if thread is not None:
            thread.join(timeout=timeout)
        return self.get_run(run_id)

    def stop(self, timeout: float = 10.0) -> None:
        """Abort every run and wait for their threads to exit."""
        with self._lock:
            self._stopped = True
            events = list(self._stop_events.values())
            threads = list(self._threads.values())

        logger.info(f"Stopping worker ({len(threads)} runs)")
        for event in events:
            event.set()
        for thread in threads:
            if thread.is_alive():
                thread.join(timeout=timeout)
