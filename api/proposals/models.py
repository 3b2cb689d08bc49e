from django.conf import settings
from django.db import models


class Proposal(models.Model):
    """A generated business proposal.

    ``content`` shape::

        {"meta": {"title": str, ...},
         "sections": {key: {"title": str, "content": str,
                            "visualizations": [...], "diagrams": [...]}}}
    """

    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='proposals')
    title = models.CharField(max_length=255, blank=True, default='')
    client_company = models.CharField(max_length=255, blank=True, default='')
    content = models.JSONField(default=dict)
    downloads = models.IntegerField(default=0)
    last_edited = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover
        return f"Proposal {self.pk} ({self.display_title})"

    @property
    def display_title(self) -> str:
        meta = (self.content or {}).get('meta') or {}
        return self.title or str(meta.get('title') or '') or 'Proposal'

    def section_items(self) -> list[tuple[str, dict]]:
        sections = (self.content or {}).get('sections') or {}
        if not isinstance(sections, dict):
            return []
        return [(key, s if isinstance(s, dict) else {'content': str(s)}) for key, s in sections.items()]

    def visual_count(self) -> int:
        total = 0
        for _key, section in self.section_items():
            total += len(section.get('visualizations') or []) + len(section.get('diagrams') or [])
        return total
