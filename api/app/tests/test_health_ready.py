from django.test import TestCase, Client


class HealthReadyTests(TestCase):
    def setUp(self):
        self.client = Client()

    def test_health_endpoint(self):
        r = self.client.get('/api/health')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json().get('status'), 'ok')

    def test_ready_endpoint(self):
        r = self.client.get('/api/ready')
        self.assertEqual(r.status_code, 200)
        data = r.json()
        self.assertTrue(data['db'])
        self.assertIn(data['storage'], (True, False))
        self.assertEqual(data['status'], 'ok')

    def test_healthz_plain_text(self):
        resp = self.client.get('/healthz')
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b'ok', resp.content)
