"""File helpers shared by the export service and the export client.

No Django imports here: the client package and Celery workers import this
module without a configured settings object.
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import os
import re
from pathlib import Path
from typing import BinaryIO

_CHUNK_SIZE = 1024 * 1024  # 1MB
_DOWNLOAD_UNSAFE_RE = re.compile(r'[^A-Za-z0-9_-]')


@dataclass(slots=True)
class Checksum:
    algo: str
    hex: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.hex


def compute_checksum(data: bytes | bytearray | memoryview | str | os.PathLike | BinaryIO) -> Checksum:
    """Return the SHA-256 checksum of bytes, a filesystem path or an open binary file."""
    sha = hashlib.sha256()
    if isinstance(data, (bytes, bytearray, memoryview)):
        sha.update(bytes(data))
    elif isinstance(data, (str, os.PathLike)):
        with open(data, 'rb') as f:  # noqa: PTH123
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b''):
                sha.update(chunk)
    elif hasattr(data, 'read'):
        for chunk in iter(lambda: data.read(_CHUNK_SIZE), b''):  # type: ignore[union-attr]
            sha.update(chunk)
    else:  # pragma: no cover - defensive
        raise TypeError('Unsupported data type for checksum')
    return Checksum(algo='sha256', hex=sha.hexdigest())


def download_filename(*parts: str | None, ext: str = 'pdf', fallback: str = 'Proposal') -> str:
    """Build an attachment name from title parts.

    Every character outside ``[A-Za-z0-9_-]`` becomes ``_``; empty parts are
    skipped and an empty result falls back to ``fallback``::

        download_filename('Q3 Bid', 'ACME Inc.') == 'Q3_Bid_ACME_Inc_.pdf'
    """
    joined = '_'.join(p.strip() for p in parts if p and p.strip())
    base = _DOWNLOAD_UNSAFE_RE.sub('_', joined) or fallback
    return f'{base}.{ext}' if ext else base


def write_bytes(path: str | os.PathLike | Path, data: bytes, *, mkdirs: bool = True) -> None:
    """Write bytes to path atomically (best-effort) creating dirs if needed."""
    p = Path(path)
    if mkdirs:
        p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + '.tmp')
    with tmp.open('wb') as f:  # noqa: PTH123
        f.write(data)
    tmp.replace(p)
