from datetime import timedelta

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.test import TestCase, override_settings
from django.utils import timezone

from exports import cache
from exports.models import PDFCacheEntry
from exports.options import build_export_options

from .helpers import TempMediaMixin, make_proposal


class PDFCacheTests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.proposal = make_proposal()
        self.options = build_export_options()

    def _store(self, key, data=b'%PDF-1.4'):
        path = default_storage.save(f'exports/{key}.pdf', ContentFile(data))
        return cache.save_to_cache(proposal=self.proposal, key=key, method='office', file_path=path, file_size=len(data))

    def test_key_depends_on_method_options_and_edits(self):
        k1 = cache.cache_key(self.proposal, 'office', self.options)
        self.assertEqual(k1, cache.cache_key(self.proposal, 'office', self.options))
        self.assertTrue(k1.startswith(f'pdf-{self.proposal.pk}-'))
        self.assertNotEqual(k1, cache.cache_key(self.proposal, 'browser', self.options))
        self.assertNotEqual(k1, cache.cache_key(self.proposal, 'office', build_export_options(landscape=True)))
        self.proposal.title = 'Edited'
        self.proposal.save()
        self.assertNotEqual(k1, cache.cache_key(self.proposal, 'office', self.options))

    def test_hit_touches_entry(self):
        self._store('k1')
        hit = cache.check_cache('k1')
        self.assertIsNotNone(hit)
        self.assertEqual(hit.access_count, 1)

    def test_miss(self):
        self.assertIsNone(cache.check_cache('nope'))

    def test_expired_entry_dropped_with_file(self):
        entry = self._store('k1')
        PDFCacheEntry.objects.filter(pk=entry.pk).update(expires_at=timezone.now() - timedelta(seconds=1))
        self.assertIsNone(cache.check_cache('k1'))
        self.assertFalse(PDFCacheEntry.objects.filter(cache_key='k1').exists())
        self.assertFalse(default_storage.exists(entry.file_path))

    def test_entry_with_missing_file_dropped(self):
        entry = self._store('k1')
        default_storage.delete(entry.file_path)
        self.assertIsNone(cache.check_cache('k1'))
        self.assertEqual(PDFCacheEntry.objects.count(), 0)

    @override_settings(EXPORT_CACHE_MAX_ENTRIES=2)
    def test_least_recently_used_evicted(self):
        old = self._store('k1')
        PDFCacheEntry.objects.filter(pk=old.pk).update(last_accessed_at=timezone.now() - timedelta(hours=1))
        self._store('k2')
        self._store('k3')
        keys = set(PDFCacheEntry.objects.values_list('cache_key', flat=True))
        self.assertEqual(keys, {'k2', 'k3'})
        self.assertFalse(default_storage.exists(old.file_path))

    def test_clear_cache_scoped_to_proposal(self):
        self._store('k1')
        self._store('k2')
        other = make_proposal(title='Other')
        path = default_storage.save('exports/other.pdf', ContentFile(b'x'))
        cache.save_to_cache(proposal=other, key='k3', method='browser', file_path=path, file_size=1)
        self.assertEqual(cache.clear_cache(self.proposal), 2)
        self.assertEqual(list(PDFCacheEntry.objects.values_list('cache_key', flat=True)), ['k3'])

    def test_replacing_entry_deletes_previous_file(self):
        first = self._store('k1')
        path = default_storage.save('exports/k1-second.pdf', ContentFile(b'%PDF-1.4 again'))
        entry = cache.save_to_cache(proposal=self.proposal, key='k1', method='office', file_path=path, file_size=14)
        self.assertEqual(PDFCacheEntry.objects.count(), 1)
        self.assertEqual(entry.file_path, path)
        self.assertFalse(default_storage.exists(first.file_path))
        self.assertTrue(default_storage.exists(path))

    def test_resaving_same_file_keeps_it(self):
        first = self._store('k1')
        cache.save_to_cache(proposal=self.proposal, key='k1', method='office', file_path=first.file_path, file_size=8)
        self.assertTrue(default_storage.exists(first.file_path))

    def test_stats(self):
        self._store('k1')
        self._store('k2', data=b'%PDF-1.4 longer')
        stale = PDFCacheEntry.objects.get(cache_key='k2')
        PDFCacheEntry.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(seconds=1))
        cache.check_cache('k1')
        stats = cache.cache_stats()
        self.assertEqual(stats['totalEntries'], 2)
        self.assertEqual(stats['expiredEntries'], 1)
        self.assertEqual(stats['totalSizeBytes'], 8 + 15)
        self.assertEqual(stats['avgAccessCount'], 0.5)
        self.assertEqual(stats['byMethod'], {'office': 2})
        self.assertIsNotNone(stats['oldestEntry'])

    def test_stats_when_empty(self):
        stats = cache.cache_stats()
        self.assertEqual(stats['totalEntries'], 0)
        self.assertEqual(stats['totalSizeBytes'], 0)
        self.assertIsNone(stats['newestEntry'])
        self.assertEqual(stats['byMethod'], {})

    def test_purge_expired(self):
        self._store('fresh')
        stale = self._store('stale')
        PDFCacheEntry.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(days=1))
        self.assertEqual(cache.purge_expired(dry_run=True), 1)
        self.assertEqual(PDFCacheEntry.objects.count(), 2)
        self.assertEqual(cache.purge_expired(), 1)
        self.assertEqual(list(PDFCacheEntry.objects.values_list('cache_key', flat=True)), ['fresh'])

    @override_settings(EXPORT_CACHE_TTL_SECONDS=60)
    def test_ttl_from_settings(self):
        entry = self._store('k1')
        delta = entry.expires_at - entry.generated_at
        self.assertEqual(delta, timedelta(seconds=60))
