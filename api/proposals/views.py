from rest_framework import permissions, viewsets
from django.conf import settings

from app.permissions import DebugOrAuthPermission
from .models import Proposal
from .serializers import ProposalSerializer


def scoped_proposals(user):
    """Proposals visible to ``user``: their own, or every proposal when DEBUG allows anonymous access."""
    qs = Proposal.objects.all()
    if getattr(user, 'is_authenticated', False):
        return qs.filter(author=user)
    if settings.DEBUG:
        return qs
    return qs.none()


class ProposalViewSet(viewsets.ModelViewSet):
    queryset = Proposal.objects.all().order_by('-created_at')
    serializer_class = ProposalSerializer

    def get_permissions(self):
        # Creating needs an author
        if self.action == 'create':
            return [permissions.IsAuthenticated()]
        return [DebugOrAuthPermission()]

    def get_queryset(self):
        return scoped_proposals(self.request.user).order_by('-created_at')

    def perform_create(self, serializer: ProposalSerializer):
        serializer.save(author=self.request.user)
