"""Cache of rendered PDFs keyed by proposal, options and last edit.

Entries expire after ``EXPORT_CACHE_TTL_SECONDS``; beyond
``EXPORT_CACHE_MAX_ENTRIES`` the least recently accessed entries are evicted.
Files live in ``default_storage`` and are deleted together with their entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import timedelta

from django.conf import settings
from django.core.files.storage import default_storage
from django.db.models import Avg, Count, F, Max, Min, Sum
from django.utils import timezone

from .models import PDFCacheEntry
from .options import ExportOptions

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7 * 24 * 3600
DEFAULT_MAX_ENTRIES = 1000


def _ttl() -> int:
    return int(getattr(settings, 'EXPORT_CACHE_TTL_SECONDS', DEFAULT_TTL_SECONDS))


def _max_entries() -> int:
    return int(getattr(settings, 'EXPORT_CACHE_MAX_ENTRIES', DEFAULT_MAX_ENTRIES))


def cache_key(proposal, method: str, options: ExportOptions) -> str:
    # last_edited is part of the key so edits never serve a stale PDF
    material = json.dumps(
        {
            'proposal': proposal.pk,
            'method': method,
            'options': options.to_payload(),
            'edited': proposal.last_edited.isoformat() if proposal.last_edited else '',
        },
        sort_keys=True,
    )
    digest = hashlib.sha256(material.encode('utf-8')).hexdigest()[:16]
    return f'pdf-{proposal.pk}-{digest}'


def _delete_file(path: str) -> None:
    if not path:
        return
    try:
        if default_storage.exists(path):
            default_storage.delete(path)
    except OSError as exc:
        logger.warning('[export.cache] could not delete %s: %s', path, exc)


def _drop(entry: PDFCacheEntry) -> None:
    # Completed jobs sharing this file lose their artifact too; downloads then answer 404
    _delete_file(entry.file_path)
    entry.delete()


def check_cache(key: str) -> PDFCacheEntry | None:
    """Return a live entry for ``key`` (touching its LRU stamp) or None."""
    entry = PDFCacheEntry.objects.filter(cache_key=key).first()
    if entry is None:
        return None
    if entry.is_expired() or not default_storage.exists(entry.file_path):
        logger.info('[export.cache] dropping stale entry %s', key)
        _drop(entry)
        return None
    now = timezone.now()
    PDFCacheEntry.objects.filter(pk=entry.pk).update(last_accessed_at=now, access_count=F('access_count') + 1)
    entry.refresh_from_db()
    logger.info('[export.cache] hit %s', key)
    return entry


def save_to_cache(*, proposal, key: str, method: str, file_path: str, file_size: int) -> PDFCacheEntry:
    now = timezone.now()
    previous = PDFCacheEntry.objects.filter(cache_key=key).values_list('file_path', flat=True).first()
    entry, _created = PDFCacheEntry.objects.update_or_create(
        cache_key=key,
        defaults={
            'proposal': proposal,
            'method': method,
            'file_path': file_path,
            'file_size': file_size,
            'generated_at': now,
            'last_accessed_at': now,
            'access_count': 0,
            'expires_at': now + timedelta(seconds=_ttl()),
        },
    )
    # a concurrent render for the same key replaced the file; the cache owns it
    if previous and previous != file_path:
        _delete_file(previous)
    evict_if_needed()
    return entry


def evict_if_needed() -> int:
    """Evict least recently accessed entries beyond the configured maximum."""
    limit = _max_entries()
    overflow = PDFCacheEntry.objects.count() - limit
    if overflow <= 0:
        return 0
    victims = list(PDFCacheEntry.objects.order_by('last_accessed_at', 'id')[:overflow])
    for entry in victims:
        _drop(entry)
    logger.info('[export.cache] evicted %d entries (limit %d)', len(victims), limit)
    return len(victims)


def clear_cache(proposal) -> int:
    entries = list(PDFCacheEntry.objects.filter(proposal=proposal))
    for entry in entries:
        _drop(entry)
    logger.info('[export.cache] cleared %d entries for proposal %s', len(entries), proposal.pk)
    return len(entries)


def purge_expired(*, dry_run: bool = False) -> int:
    qs = PDFCacheEntry.objects.filter(expires_at__isnull=False, expires_at__lte=timezone.now())
    if dry_run:
        return qs.count()
    count = 0
    for entry in qs.iterator():
        _drop(entry)
        count += 1
    return count


def cache_stats() -> dict:
    """Aggregate figures for the whole cache, shaped for JSON responses."""
    totals = PDFCacheEntry.objects.aggregate(
        entries=Count('id'),
        size=Sum('file_size'),
        accesses=Avg('access_count'),
        oldest=Min('generated_at'),
        newest=Max('generated_at'),
    )
    expired = PDFCacheEntry.objects.filter(expires_at__isnull=False, expires_at__lte=timezone.now()).count()
    by_method = {
        row['method']: row['n']
        for row in PDFCacheEntry.objects.values('method').annotate(n=Count('id')).order_by('method')
    }
    return {
        'totalEntries': totals['entries'],
        'expiredEntries': expired,
        'totalSizeBytes': totals['size'] or 0,
        'avgAccessCount': round(totals['accesses'] or 0, 2),
        'oldestEntry': totals['oldest'].isoformat() if totals['oldest'] else None,
        'newestEntry': totals['newest'].isoformat() if totals['newest'] else None,
        'maxEntries': _max_entries(),
        'byMethod': by_method,
    }
