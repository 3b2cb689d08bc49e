import tempfile
from pathlib import Path

import requests
from django.test import SimpleTestCase

from exports.client import (
    CancelToken,
    ClientState,
    Completed,
    DownloadError,
    ExportApi,
    ExportClientError,
    ExportJobController,
    Failed,
    JobFailure,
    JobSubmitter,
    PollTransportError,
    Processing,
    Queued,
    ResultDownloader,
    RetryPolicy,
    StatusPoller,
    SubmissionError,
    ValidationError,
)
from exports.client.controller import POLL_FAILED_MESSAGE
from exports.options import ExportOptions, ValidationError as OptionsValidationError

from .helpers import FakeSession, make_response

BASE = 'http://api.test'


def accepted(job_id='job-1', method='browser', cached=False):
    return make_response(200, {'jobId': job_id, 'status': 'queued', 'method': method, 'estimatedTime': 6000, 'cached': cached})


def status(payload):
    return make_response(200, payload)


class JobSubmitterTests(SimpleTestCase):
    def test_posts_wire_options_and_returns_handle(self):
        session = FakeSession(accepted())
        sub = JobSubmitter(ExportApi(BASE, session=session)).submit(7, ExportOptions())
        self.assertEqual(sub.job_id, 'job-1')
        self.assertEqual(sub.method, 'browser')
        self.assertEqual(sub.estimated_time, 6000)
        self.assertFalse(sub.cached)
        method, url, kwargs = session.calls[0]
        self.assertEqual((method, url), ('POST', f'{BASE}/api/proposals/7/export'))
        self.assertEqual(kwargs['json'], ExportOptions().to_payload())

    def test_bearer_token_sent(self):
        session = FakeSession(accepted())
        JobSubmitter(ExportApi(BASE, session=session, token='abc')).submit(1, ExportOptions())
        self.assertEqual(session.calls[0][2]['headers']['Authorization'], 'Bearer abc')

    def test_rejection_surfaces_server_error(self):
        session = FakeSession(make_response(400, {'error': 'must be between 0 and 50 mm', 'field': 'margins.top'}))
        with self.assertRaises(SubmissionError) as ctx:
            JobSubmitter(ExportApi(BASE, session=session)).submit(1, ExportOptions())
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(str(ctx.exception), 'must be between 0 and 50 mm')

    def test_nested_error_shape_understood(self):
        session = FakeSession(make_response(404, {'error': {'code': 'not_found', 'message': 'Proposal not found'}}))
        with self.assertRaises(SubmissionError) as ctx:
            JobSubmitter(ExportApi(BASE, session=session)).submit(1, ExportOptions())
        self.assertEqual(str(ctx.exception), 'Proposal not found')

    def test_missing_job_id_is_an_error(self):
        session = FakeSession(make_response(200, {'status': 'queued'}))
        with self.assertRaises(SubmissionError):
            JobSubmitter(ExportApi(BASE, session=session)).submit(1, ExportOptions())

    def test_non_finite_estimate_is_unknown(self):
        session = FakeSession(make_response(200, content=b'{"jobId": "job-1", "status": "queued", "estimatedTime": 1e999}'))
        sub = JobSubmitter(ExportApi(BASE, session=session)).submit(1, ExportOptions())
        self.assertEqual(sub.job_id, 'job-1')
        self.assertIsNone(sub.estimated_time)

    def test_transport_error_wrapped_and_not_retried(self):
        session = FakeSession(requests.ConnectionError('refused'))
        with self.assertRaises(SubmissionError) as ctx:
            JobSubmitter(ExportApi(BASE, session=session)).submit(1, ExportOptions())
        self.assertIsNone(ctx.exception.status_code)
        self.assertEqual(len(session.calls), 1)


class StatusPollerTests(SimpleTestCase):
    def test_stops_on_first_terminal_status(self):
        session = FakeSession(
            status({'status': 'processing', 'progress': 30}),
            status({'status': 'processing', 'progress': 80}),
            status({'status': 'completed', 'progress': 100, 'fileSize': 10}),
        )
        seen = []
        result = StatusPoller(ExportApi(BASE, session=session), interval=0).poll(3, 'job-1', CancelToken(), seen.append)
        self.assertIsInstance(result, Completed)
        self.assertEqual([s.progress for s in seen], [30, 80, 100])
        self.assertEqual(len(session.calls), 3)
        for _method, url, kwargs in session.calls:
            self.assertEqual(url, f'{BASE}/api/proposals/3/export/status')
            self.assertEqual(kwargs['params'], {'jobId': 'job-1'})

    def test_cancelled_token_issues_no_request(self):
        session = FakeSession()
        token = CancelToken()
        token.cancel()
        self.assertIsNone(StatusPoller(ExportApi(BASE, session=session), interval=0).poll(1, 'j', token))
        self.assertEqual(session.calls, [])

    def test_cancel_from_callback_stops_loop(self):
        session = FakeSession(status({'status': 'processing', 'progress': 10}))
        token = CancelToken()
        result = StatusPoller(ExportApi(BASE, session=session), interval=0).poll(1, 'j', token, lambda _s: token.cancel())
        self.assertIsNone(result)
        self.assertEqual(len(session.calls), 1)

    def test_http_error_ends_loop_without_retry(self):
        session = FakeSession(make_response(500, {'error': 'boom'}))
        with self.assertRaises(PollTransportError) as ctx:
            StatusPoller(ExportApi(BASE, session=session), interval=0).poll(1, 'j', CancelToken())
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(len(session.calls), 1)

    def test_retry_policy_recovers_from_server_errors(self):
        session = FakeSession(
            make_response(503, {'error': 'busy'}),
            requests.ConnectionError('reset'),
            status({'status': 'completed'}),
        )
        poller = StatusPoller(ExportApi(BASE, session=session), interval=0, retry=RetryPolicy(max_retries=2, backoff=0))
        self.assertIsInstance(poller.poll(1, 'j', CancelToken()), Completed)
        self.assertEqual(len(session.calls), 3)

    def test_retry_policy_gives_up_after_max_retries(self):
        session = FakeSession(*[make_response(502, {'error': 'bad gateway'}) for _ in range(3)])
        poller = StatusPoller(ExportApi(BASE, session=session), interval=0, retry=RetryPolicy(max_retries=2, backoff=0))
        with self.assertRaises(PollTransportError):
            poller.poll(1, 'j', CancelToken())
        self.assertEqual(len(session.calls), 3)

    def test_retry_policy_does_not_retry_client_errors(self):
        session = FakeSession(make_response(404, {'error': 'Job not found'}))
        poller = StatusPoller(ExportApi(BASE, session=session), interval=0, retry=RetryPolicy(backoff=0))
        with self.assertRaises(PollTransportError) as ctx:
            poller.poll(1, 'j', CancelToken())
        self.assertEqual(str(ctx.exception), 'Job not found')

    def test_backoff_is_capped(self):
        policy = RetryPolicy(backoff=1.0, max_backoff=5.0)
        self.assertEqual([policy.delay(i) for i in range(5)], [1.0, 2.0, 4.0, 5.0, 5.0])


class ResultDownloaderTests(SimpleTestCase):
    def test_refuses_without_completed_status(self):
        session = FakeSession()
        downloader = ResultDownloader(ExportApi(BASE, session=session))
        for st in (None, Queued(), Processing(50), Failed('x')):
            with self.subTest(status=st):
                with self.assertRaises(DownloadError):
                    downloader.fetch(1, 'j', st)
        self.assertEqual(session.calls, [])

    def test_saves_under_sanitized_title(self):
        session = FakeSession(make_response(200, content=b'%PDF-1.4 data'))
        downloader = ResultDownloader(ExportApi(BASE, session=session))
        with tempfile.TemporaryDirectory() as tmp:
            path = downloader.download(2, 'j', Completed(), title='Q3 Bid: ACME/Europe', dest_dir=tmp)
            self.assertEqual(path.name, 'Q3_Bid__ACME_Europe.pdf')
            self.assertEqual(path.read_bytes(), b'%PDF-1.4 data')
        _m, url, kwargs = session.calls[0]
        self.assertEqual(url, f'{BASE}/api/proposals/2/export/download')
        self.assertEqual(kwargs['headers']['Accept'], 'application/pdf')

    def test_untitled_falls_back_to_proposal(self):
        session = FakeSession(make_response(200, content=b'%PDF'))
        with tempfile.TemporaryDirectory() as tmp:
            path = ResultDownloader(ExportApi(BASE, session=session)).download(2, 'j', Completed(), dest_dir=tmp)
        self.assertEqual(path.name, 'Proposal.pdf')


class ExportJobControllerTests(SimpleTestCase):
    def controller(self, *responses, **kwargs):
        session = FakeSession(*responses)
        kwargs.setdefault('interval', 0)
        ctl = ExportJobController(ExportApi(BASE, session=session), 7, title='Q3 Bid', **kwargs)
        return ctl, session

    def test_happy_path_three_polls_then_download(self):
        ctl, session = self.controller(
            accepted(),
            status({'status': 'processing', 'progress': 30, 'method': 'browser'}),
            status({'status': 'processing', 'progress': 80, 'method': 'browser'}),
            status({'status': 'completed', 'progress': 100, 'fileSize': 13, 'filePath': 'exports/x.pdf', 'method': 'browser'}),
            make_response(200, content=b'%PDF-1.4 data'),
        )
        ctl.submit()
        self.assertIs(ctl.state, ClientState.QUEUED)
        view = ctl.wait()
        self.assertIs(view.state, ClientState.COMPLETED)
        self.assertEqual(view.progress, 100)
        self.assertEqual(view.file_size, 13)
        self.assertEqual(view.method, 'browser')
        self.assertEqual(len(session.urls('GET')), 3)
        with tempfile.TemporaryDirectory() as tmp:
            path = ctl.download(tmp)
            self.assertEqual(path, Path(tmp) / 'Q3_Bid.pdf')
            self.assertEqual(path.read_bytes(), b'%PDF-1.4 data')

    def test_server_failure_is_terminal_and_blocks_download(self):
        ctl, session = self.controller(
            accepted(),
            status({'status': 'processing', 'progress': 30}),
            status({'status': 'failed', 'error': 'LibreOffice conversion failed: crash'}),
        )
        ctl.submit({'method': 'office'})
        view = ctl.wait()
        self.assertIs(view.state, ClientState.FAILED)
        self.assertEqual(view.error, 'LibreOffice conversion failed: crash')
        self.assertIsInstance(ctl.last_error, JobFailure)
        calls = len(session.calls)
        with self.assertRaises(DownloadError):
            ctl.download()
        self.assertEqual(len(session.calls), calls)

    def test_poll_error_fails_with_generic_message(self):
        ctl, session = self.controller(accepted(), make_response(500, {'error': 'db down'}))
        ctl.submit()
        view = ctl.wait()
        self.assertIs(view.state, ClientState.FAILED)
        self.assertEqual(view.error, POLL_FAILED_MESSAGE)
        self.assertIsInstance(ctl.last_error, PollTransportError)
        self.assertEqual(ctl.last_error.status_code, 500)
        self.assertEqual(len(session.urls('GET')), 1)

    def test_malformed_status_body_fails_after_one_poll(self):
        ctl, session = self.controller(accepted(), make_response(200, content=b'{not json'))
        ctl.submit()
        view = ctl.wait()
        self.assertIs(view.state, ClientState.FAILED)
        self.assertEqual(view.error, POLL_FAILED_MESSAGE)
        self.assertIsInstance(ctl.last_error, PollTransportError)
        self.assertEqual(len(session.urls('GET')), 1)

    def test_non_finite_progress_fails_the_job(self):
        ctl, session = self.controller(accepted(), make_response(200, content=b'{"status": "processing", "progress": 1e999}'))
        ctl.submit()
        view = ctl.wait()
        self.assertIs(view.state, ClientState.FAILED)
        self.assertIsInstance(ctl.last_error, PollTransportError)
        self.assertEqual(len(session.urls('GET')), 1)

    def test_nan_progress_on_background_thread_fails_the_job(self):
        ctl, _session = self.controller(accepted(), make_response(200, content=b'{"status": "processing", "progress": NaN}'))
        ctl.submit()
        thread = ctl.start()
        thread.join(5)
        self.assertFalse(thread.is_alive())
        self.assertIs(ctl.state, ClientState.FAILED)
        self.assertIsInstance(ctl.last_error, PollTransportError)

    def test_invalid_options_rejected_before_any_request(self):
        ctl, session = self.controller()
        with self.assertRaises(ValidationError) as ctx:
            ctl.submit({'margins': {'top': 60}})
        self.assertEqual(ctx.exception.field, 'margins.top')
        self.assertIsInstance(ctx.exception, ExportClientError)
        self.assertIsInstance(ctx.exception, OptionsValidationError)
        self.assertEqual(session.calls, [])
        self.assertIs(ctl.state, ClientState.IDLE)

    def test_submission_error_leaves_controller_idle(self):
        ctl, _session = self.controller(make_response(404, {'error': 'Proposal not found'}))
        with self.assertRaises(SubmissionError):
            ctl.submit()
        self.assertIs(ctl.state, ClientState.IDLE)
        self.assertIsInstance(ctl.last_error, SubmissionError)

    def test_cached_submission_reported(self):
        ctl, _session = self.controller(
            accepted(cached=True),
            status({'status': 'completed', 'cached': True, 'fileSize': 4}),
        )
        self.assertTrue(ctl.submit().cached)
        view = ctl.wait()
        self.assertTrue(view.cached)
        self.assertIs(view.state, ClientState.COMPLETED)

    def test_download_failure_keeps_completed_state(self):
        ctl, _session = self.controller(
            accepted(),
            status({'status': 'completed', 'fileSize': 4}),
            make_response(404, {'error': 'PDF not ready or not found'}),
        )
        ctl.submit()
        ctl.wait()
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(DownloadError) as ctx:
                ctl.download(tmp)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIs(ctl.state, ClientState.COMPLETED)
        self.assertIs(ctl.last_error, ctx.exception)

    def test_stale_queued_and_post_terminal_updates_ignored(self):
        ctl, _session = self.controller(accepted())
        ctl.submit()
        gen = ctl._generation
        ctl._apply(gen, Processing(progress=40, method='browser'))
        ctl._apply(gen, Queued(progress=0))
        self.assertIs(ctl.state, ClientState.PROCESSING)
        self.assertEqual(ctl.snapshot().progress, 40)
        ctl._apply(gen, Completed(file_size=9))
        ctl._apply(gen, Failed('late failure'))
        self.assertIs(ctl.state, ClientState.COMPLETED)
        self.assertIsNone(ctl.snapshot().error)

    def test_resubmit_resets_and_ignores_previous_job(self):
        ctl, _session = self.controller(
            accepted('job-1'),
            status({'status': 'failed', 'error': 'first run broke'}),
            accepted('job-2'),
        )
        ctl.submit()
        old_gen = ctl._generation
        ctl.wait()
        self.assertIs(ctl.state, ClientState.FAILED)
        ctl.submit()
        self.assertIs(ctl.state, ClientState.QUEUED)
        self.assertEqual(ctl.snapshot().job_id, 'job-2')
        self.assertIsNone(ctl.snapshot().error)
        self.assertIsNone(ctl.last_error)
        ctl._apply(old_gen, Completed())
        self.assertIs(ctl.state, ClientState.QUEUED)

    def test_background_thread_polls_to_completion(self):
        ctl, _session = self.controller(
            accepted(),
            status({'status': 'processing', 'progress': 50}),
            status({'status': 'completed', 'fileSize': 1}),
        )
        ctl.submit()
        thread = ctl.start()
        thread.join(5)
        self.assertFalse(thread.is_alive())
        self.assertIs(ctl.state, ClientState.COMPLETED)

    def test_wait_joins_running_background_loop(self):
        ctl, session = self.controller(
            accepted(),
            status({'status': 'processing', 'progress': 50}),
            status({'status': 'completed', 'fileSize': 1}),
            interval=0.2,
        )
        ctl.submit()
        thread = ctl.start()
        view = ctl.wait()
        self.assertFalse(thread.is_alive())
        self.assertIs(view.state, ClientState.COMPLETED)
        self.assertEqual(len(session.urls('GET')), 2)

    def test_close_stops_polling_without_requests(self):
        ctl, session = self.controller(accepted(), interval=30)
        ctl.submit()
        thread = ctl.start()
        ctl.close(timeout=5)
        self.assertFalse(thread.is_alive())
        self.assertIs(ctl.state, ClientState.QUEUED)
        self.assertEqual(session.urls('GET'), [])
