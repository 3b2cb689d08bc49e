import json
import tempfile
import uuid

import requests
from django.contrib.auth import get_user_model
from django.test import override_settings

from proposals.models import Proposal


def make_response(status_code: int = 200, payload=None, content: bytes = b'') -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    if payload is not None:
        resp._content = json.dumps(payload).encode('utf-8')
        resp.headers['Content-Type'] = 'application/json'
    else:
        resp._content = content
    return resp


class FakeSession:
    """Scripted stand-in for ``requests.Session``; each call pops the next response.

    Running out of responses raises IndexError, which makes unexpected extra
    requests fail loudly.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        return self._next('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self._next('POST', url, **kwargs)

    def urls(self, method: str | None = None) -> list[str]:
        return [url for m, url, _ in self.calls if method is None or m == method]


def make_proposal(user=None, *, title='Q3 Bid', client_company='ACME Inc.', sections=None) -> Proposal:
    if user is None:
        user = get_user_model().objects.create_user(username=f'user-{uuid.uuid4().hex[:8]}', password='p')
    if sections is None:
        sections = {
            'summary': {'title': 'Executive Summary', 'content': 'Hello world'},
            'plan': {'title': 'Plan', 'content': 'Do X\nThen Y'},
        }
    return Proposal.objects.create(
        author=user,
        title=title,
        client_company=client_company,
        content={'meta': {'title': title}, 'sections': sections},
    )


class TempMediaMixin:
    """Point MEDIA_ROOT (and so default_storage) at a per-test temporary directory."""

    def setUp(self):
        super().setUp()
        tmp = tempfile.TemporaryDirectory(prefix='exports-test-media-')
        self.addCleanup(tmp.cleanup)
        self.media_root = tmp.name
        override = override_settings(MEDIA_ROOT=tmp.name)
        override.enable()
        self.addCleanup(override.disable)
