from django.urls import path

from revenue.api.views import (
    CollectionAttributionListCreateAPIView,
    CollectionRevenueConfigAPIView,
    CollectionRevenueEventListAPIView,
    CollectionShareListCreateAPIView,
    CollectionSplitPreviewAPIView,
    RevenueEventTransitionAPIView,
    ShareDeactivateAPIView,
)

urlpatterns = [
    path(
        "collections/<int:collection_id>/config/",
        CollectionRevenueConfigAPIView.as_view(),
        name="revenue-config",
    ),
    path(
        "collections/<int:collection_id>/shares/",
        CollectionShareListCreateAPIView.as_view(),
        name="revenue-shares",
    ),
    path(
        "collections/<int:collection_id>/attributions/",
        CollectionAttributionListCreateAPIView.as_view(),
        name="revenue-attributions",
    ),
    path(
        "collections/<int:collection_id>/events/",
        CollectionRevenueEventListAPIView.as_view(),
        name="revenue-events",
    ),
    path(
        "collections/<int:collection_id>/preview/",
        CollectionSplitPreviewAPIView.as_view(),
        name="revenue-preview",
    ),
    path("shares/<int:share_id>/deactivate/", ShareDeactivateAPIView.as_view(), name="revenue-share-deactivate"),
    path(
        "events/<int:event_id>/<str:action>/",
        RevenueEventTransitionAPIView.as_view(),
        name="revenue-event-action",
    ),
]
