"""Client-side export job state machine.

    idle -> queued -> processing* -> completed | failed

``completed`` and ``failed`` are absorbing until the next ``submit()``, which
cancels any running poll loop and starts over from ``idle``. Cancelling only
stops observation: there is no server call to stop the job itself.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from exports.options import ExportOptions, ValidationError as OptionsValidationError, build_export_options

from .cancel import CancelToken
from .downloader import ResultDownloader
from .errors import ExportClientError, JobFailure, PollTransportError, ValidationError
from .http import ExportApi
from .poller import DEFAULT_INTERVAL, RetryPolicy, StatusPoller
from .statuses import Completed, Failed, JobStatus, Processing, Queued
from .submitter import JobSubmitter, Submission

logger = logging.getLogger(__name__)

POLL_FAILED_MESSAGE = 'Failed to check status'


class ClientState(str, Enum):
    IDLE = 'idle'
    QUEUED = 'queued'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'

    @property
    def terminal(self) -> bool:
        return self in (ClientState.COMPLETED, ClientState.FAILED)


@dataclass(frozen=True, slots=True)
class JobView:
    """Read-only projection of the controller for presentation code."""

    state: ClientState = ClientState.IDLE
    job_id: str | None = None
    progress: int = 0
    method: str | None = None
    estimated_time: int | None = None
    file_size: int | None = None
    file_path: str | None = None
    cached: bool = False
    error: str | None = None


class ExportJobController:
    def __init__(
        self,
        api: ExportApi,
        proposal_id: Any,
        *,
        title: str | None = None,
        interval: float = DEFAULT_INTERVAL,
        retry: RetryPolicy | None = None,
    ):
        self.proposal_id = proposal_id
        self.title = title
        self.submitter = JobSubmitter(api)
        self.poller = StatusPoller(api, interval=interval, retry=retry)
        self.downloader = ResultDownloader(api)
        self.last_error: ExportClientError | None = None
        self._lock = threading.Lock()
        self._view = JobView()
        self._status: JobStatus | None = None
        self._token = CancelToken()
        self._generation = 0
        self._thread: threading.Thread | None = None

    # --- observation -----------------------------------------------------
    @property
    def state(self) -> ClientState:
        return self._view.state

    def snapshot(self) -> JobView:
        return self._view

    # --- submission ------------------------------------------------------
    def submit(self, options: ExportOptions | Mapping[str, Any] | None = None, **overrides: Any) -> Submission:
        self.close()
        with self._lock:
            self._generation += 1
            self._token = CancelToken()
            self._thread = None
            self._view = JobView()
            self._status = None
            self.last_error = None

        if not isinstance(options, ExportOptions) or overrides:
            base = options.to_payload() if isinstance(options, ExportOptions) else options
            try:
                options = build_export_options(base, **overrides)
            except OptionsValidationError as exc:
                self.last_error = ValidationError(exc.field, exc.message)
                raise self.last_error from exc

        try:
            submission = self.submitter.submit(self.proposal_id, options)
        except ExportClientError as exc:
            self.last_error = exc
            raise

        with self._lock:
            self._view = JobView(
                state=ClientState.QUEUED,
                job_id=submission.job_id,
                method=submission.method,
                estimated_time=submission.estimated_time,
                cached=submission.cached,
            )
        return submission

    # --- polling ---------------------------------------------------------
    def _apply(self, generation: int, status: JobStatus) -> None:
        with self._lock:
            if generation != self._generation or self._view.state.terminal:
                return
            view = self._view
            if isinstance(status, Queued):
                if view.state is not ClientState.QUEUED:
                    return
                self._view = replace(view, progress=status.progress or view.progress, method=status.method or view.method)
            elif isinstance(status, Processing):
                self._view = replace(
                    view,
                    state=ClientState.PROCESSING,
                    progress=status.progress or view.progress,
                    method=status.method or view.method,
                )
            elif isinstance(status, Completed):
                self._view = replace(
                    view,
                    state=ClientState.COMPLETED,
                    progress=100,
                    method=status.method or view.method,
                    file_size=status.file_size,
                    file_path=status.file_path,
                    cached=status.cached or view.cached,
                )
            elif isinstance(status, Failed):
                self._view = replace(view, state=ClientState.FAILED, error=status.error)
                self.last_error = JobFailure(status.error)
            self._status = status

    def _fail(self, generation: int, exc: PollTransportError) -> None:
        with self._lock:
            if generation != self._generation or self._view.state.terminal:
                return
            self._view = replace(self._view, state=ClientState.FAILED, error=POLL_FAILED_MESSAGE)
            self._status = Failed(POLL_FAILED_MESSAGE)
            self.last_error = exc

    def wait(self) -> JobView:
        """Poll on the calling thread until terminal or cancelled.

        If ``start()`` already owns the poll loop, this joins that thread so a
        job never has two loops issuing status requests.
        """
        with self._lock:
            view, token, generation = self._view, self._token, self._generation
            thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()
            return self._view
        if view.state not in (ClientState.QUEUED, ClientState.PROCESSING):
            return view
        try:
            self.poller.poll(
                self.proposal_id,
                view.job_id,
                token,
                on_status=lambda status: self._apply(generation, status),
            )
        except PollTransportError as exc:
            logger.warning('[export.controller] job=%s poll failed: %s', view.job_id, exc)
            self._fail(generation, exc)
        return self._view

    def start(self) -> threading.Thread:
        """Run ``wait()`` on a daemon thread owned by this controller."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return self._thread
            thread = threading.Thread(target=self.wait, name=f'export-poll-{self._view.job_id}', daemon=True)
            self._thread = thread
        thread.start()
        return thread

    def close(self, timeout: float | None = None) -> None:
        """Stop observing the current job (owner teardown)."""
        with self._lock:
            self._token.cancel()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    # --- download --------------------------------------------------------
    def download(self, dest_dir: str | Path = '.') -> Path:
        """Save the artifact; a failure here leaves the completed state intact."""
        view, status = self._view, self._status
        try:
            return self.downloader.download(self.proposal_id, view.job_id, status, title=self.title, dest_dir=dest_dir)
        except ExportClientError as exc:
            self.last_error = exc
            raise
