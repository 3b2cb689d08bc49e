"""Tagged job status variants, converted from the status payload at the HTTP boundary.

Each variant only carries the fields valid for its status, so callers match on
type instead of probing optional keys::

    {"status": "processing", "progress": 30, "method": "browser"} -> Processing(30, 'browser')
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Union

from .errors import PollTransportError


@dataclass(frozen=True, slots=True)
class Queued:
    progress: int = 0
    method: str | None = None


@dataclass(frozen=True, slots=True)
class Processing:
    progress: int = 0
    method: str | None = None


@dataclass(frozen=True, slots=True)
class Completed:
    file_size: int | None = None
    file_path: str | None = None
    method: str | None = None
    cached: bool = False
    progress: int = 100


@dataclass(frozen=True, slots=True)
class Failed:
    error: str


JobStatus = Union[Queued, Processing, Completed, Failed]
TERMINAL = (Completed, Failed)


def is_terminal(status: JobStatus | None) -> bool:
    return isinstance(status, TERMINAL)


def _number(payload: Mapping[str, Any], key: str) -> int | None:
    raw = payload.get(key)
    if raw is None:
        return None
    # JSON decoding accepts Infinity and NaN, which have no integer form.
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
        raise PollTransportError(f'invalid {key} value: {raw!r}')
    return int(raw)


def _progress(payload: Mapping[str, Any], default: int) -> int:
    value = _number(payload, 'progress')
    if value is None:
        return default
    return max(0, min(100, value))


def parse_status(payload: Any) -> JobStatus:
    """Convert a decoded status body into its variant.

    Raises ``PollTransportError`` for anything that is not a recognizable status.
    """
    if not isinstance(payload, Mapping):
        raise PollTransportError('status body is not a JSON object')
    status = payload.get('status')
    method = payload.get('method') or None
    if status == 'queued':
        return Queued(progress=_progress(payload, 0), method=method)
    if status == 'processing':
        return Processing(progress=_progress(payload, 0), method=method)
    if status == 'completed':
        return Completed(
            file_size=_number(payload, 'fileSize'),
            file_path=payload.get('filePath') or None,
            method=method,
            cached=bool(payload.get('cached', False)),
        )
    if status == 'failed':
        return Failed(error=str(payload.get('error') or 'Unknown error'))
    raise PollTransportError(f'unknown job status: {status!r}')
