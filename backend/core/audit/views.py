from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from audit.models import AuditEntry
from audit.serializers import AuditEntrySerializer
from audit.services import chain_id_for, verify_chain
from marketplace.access import authorization_context_for


class CollectionAuditEntryListAPIView(APIView):
    def get(self, request, collection_id: int):
        ctx = authorization_context_for(request.user)
        if not ctx.can_manage_collection(collection_id):
            return Response(
                {"detail": "Only the collection owner or an admin can read its audit trail."},
                status=status.HTTP_403_FORBIDDEN,
            )

        try:
            limit = int(request.query_params.get("limit", "200"))
        except ValueError:
            limit = 200
        limit = max(1, min(limit, 1000))

        chain_id = chain_id_for(collection_id)
        entries = AuditEntry.objects.filter(chain_id=chain_id).order_by("-occurred_at", "-id")[:limit]
        return Response(
            {
                "chain_id": chain_id,
                "chain_valid": verify_chain(chain_id),
                "entries": AuditEntrySerializer(entries, many=True).data,
            }
        )
