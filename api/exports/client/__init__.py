"""Python client for the proposal export API.

Typical use::

    api = ExportApi('https://proposals.example.com', token=access_token)
    ctl = ExportJobController(api, proposal_id, title='Q3 Bid')
    ctl.submit({'quality': 'high', 'margins': {'top': 15}})
    view = ctl.wait()
    if view.state is ClientState.COMPLETED:
        ctl.download('/tmp')
"""

from .cancel import CancelToken
from .controller import ClientState, ExportJobController, JobView
from .downloader import ResultDownloader, download_filename
from .errors import (
    DownloadError,
    ExportClientError,
    JobFailure,
    PollTransportError,
    SubmissionError,
    ValidationError,
)
from .http import ExportApi
from .poller import RetryPolicy, StatusPoller
from .statuses import Completed, Failed, JobStatus, Processing, Queued, parse_status
from .submitter import JobSubmitter, Submission

__all__ = [
    'CancelToken',
    'ClientState',
    'Completed',
    'DownloadError',
    'ExportApi',
    'ExportClientError',
    'ExportJobController',
    'Failed',
    'JobFailure',
    'JobStatus',
    'JobSubmitter',
    'JobView',
    'PollTransportError',
    'Processing',
    'Queued',
    'ResultDownloader',
    'RetryPolicy',
    'StatusPoller',
    'Submission',
    'SubmissionError',
    'ValidationError',
    'download_filename',
    'parse_status',
]
