from __future__ import annotations

from typing import Any
from urllib.parse import quote

import requests

DEFAULT_TIMEOUT = 30.0


class ExportApi:
    """Thin wrapper around a ``requests.Session`` bound to one API base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self._headers: dict[str, str] = {'Accept': 'application/json'}
        if token:
            self._headers['Authorization'] = f'Bearer {token}'

    def export_url(self, proposal_id: Any, suffix: str = '') -> str:
        pid = quote(str(proposal_id), safe='')
        return f'{self.base_url}/api/proposals/{pid}/export{suffix}'

    def post_json(self, url: str, payload: dict) -> requests.Response:
        return self.session.post(url, json=payload, headers=self._headers, timeout=self.timeout)

    def get(self, url: str, *, params: dict | None = None, accept: str | None = None) -> requests.Response:
        headers = dict(self._headers)
        if accept:
            headers['Accept'] = accept
        return self.session.get(url, params=params, headers=headers, timeout=self.timeout)


def error_message(resp: requests.Response, fallback: str) -> str:
    """Best-effort extraction of the ``error`` field from a non-2xx body."""
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        err = data.get('error')
        if isinstance(err, str) and err:
            return err
        if isinstance(err, dict) and err.get('message'):
            return str(err['message'])
    return fallback
