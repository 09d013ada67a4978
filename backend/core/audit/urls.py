from django.urls import path

from audit.views import CollectionAuditEntryListAPIView

urlpatterns = [
    path(
        "collections/<int:collection_id>/",
        CollectionAuditEntryListAPIView.as_view(),
        name="audit-collection-entries",
    ),
]
