from __future__ import annotations

from exports.options import ValidationError as _OptionsValidationError


class ExportClientError(Exception):
    """Base class for every error raised by the export client."""


class ValidationError(_OptionsValidationError, ExportClientError):
    """Options rejected locally; nothing was sent."""


class SubmissionError(ExportClientError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PollTransportError(ExportClientError):
    """A status request failed to complete or returned an unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class JobFailure(ExportClientError):
    """The server reported ``status = failed``; ``message`` is its error verbatim."""


class DownloadError(ExportClientError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
