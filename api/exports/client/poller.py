"""Fixed-cadence status polling for one export job.

One request is in flight at a time; the next one is scheduled only after the
previous response has been consumed. The loop ends on the first terminal
status, on cancellation, or on the first failed request. There is no cap on
the number of polls: a job that never reaches a terminal state is polled
until the owner cancels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import requests

from .cancel import CancelToken
from .errors import PollTransportError
from .http import ExportApi, error_message
from .statuses import JobStatus, is_terminal, parse_status

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0

_CANCELLED = object()


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Opt-in retry of failed status requests with exponential backoff.

    Only network errors and 5xx responses are retried; a 4xx or an unreadable
    body still ends the loop immediately.
    """

    max_retries: int = 3
    backoff: float = 1.0
    max_backoff: float = 30.0

    def delay(self, attempt: int) -> float:
        return min(self.max_backoff, self.backoff * (2 ** attempt))

    @staticmethod
    def retryable(exc: PollTransportError) -> bool:
        return exc.status_code is None or exc.status_code >= 500


class StatusPoller:
    def __init__(self, api: ExportApi, *, interval: float = DEFAULT_INTERVAL, retry: RetryPolicy | None = None):
        self.api = api
        self.interval = interval
        self.retry = retry

    def fetch(self, proposal_id: Any, job_id: str) -> JobStatus:
        """Issue a single status request and parse the response."""
        url = self.api.export_url(proposal_id, '/status')
        try:
            resp = self.api.get(url, params={'jobId': job_id})
        except requests.RequestException as exc:
            raise PollTransportError(f'status request failed: {exc}') from exc
        if not resp.ok:
            raise PollTransportError(
                error_message(resp, f'status request returned HTTP {resp.status_code}'),
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise PollTransportError('status response is not valid JSON', status_code=resp.status_code) from exc
        return parse_status(payload)

    def _fetch_with_policy(self, proposal_id: Any, job_id: str, token: CancelToken):
        attempt = 0
        while True:
            try:
                return self.fetch(proposal_id, job_id)
            except PollTransportError as exc:
                if self.retry is None or attempt >= self.retry.max_retries or not self.retry.retryable(exc):
                    raise
                delay = self.retry.delay(attempt)
                attempt += 1
                logger.warning('[export.poll] job=%s retry %d/%d in %.1fs: %s', job_id, attempt, self.retry.max_retries, delay, exc)
                if token.wait(delay):
                    return _CANCELLED

    def poll(
        self,
        proposal_id: Any,
        job_id: str,
        token: CancelToken,
        on_status: Callable[[JobStatus], None] | None = None,
    ) -> JobStatus | None:
        """Poll until a terminal status; return it, or ``None`` if cancelled.

        Raises ``PollTransportError`` when a request fails (after the retry
        policy, if any, is exhausted).
        """
        polls = 0
        while True:
            if token.wait(self.interval):
                logger.debug('[export.poll] job=%s cancelled after %d polls', job_id, polls)
                return None
            status = self._fetch_with_policy(proposal_id, job_id, token)
            polls += 1
            if status is _CANCELLED or token.cancelled:
                return None
            if on_status is not None:
                on_status(status)
            if is_terminal(status):
                logger.info('[export.poll] job=%s terminal=%s after %d polls', job_id, type(status).__name__, polls)
                return status
