from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from marketplace.access import authorization_context_for
from revenue.api.serializers import (
    CollectionRevenueConfigSerializer,
    EventTransitionSerializer,
    IndividualShareSerializer,
    IndividualShareWriteSerializer,
    ItemAttributionSerializer,
    ItemAttributionWriteSerializer,
    RevenueConfigUpsertSerializer,
    RevenueEventSerializer,
    SplitPreviewSerializer,
)
from revenue.services import attribution, ledger, share_registry, splits

logger = logging.getLogger(__name__)


def _error_detail(exc: DjangoValidationError):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return " ".join(exc.messages)


def _bad_request(exc: DjangoValidationError) -> Response:
    return Response({"detail": _error_detail(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _query_datetime(request, name: str):
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    value = parse_datetime(raw)
    if value is None:
        raise DjangoValidationError({name: f"Invalid datetime for {name}."})
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _query_int(request, name: str):
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise DjangoValidationError({name: f"{name} must be an integer."}) from None


class CollectionRevenueConfigAPIView(APIView):
    def get(self, request, collection_id: int):
        authorization_context_for(request.user).require_manage(collection_id)
        config = share_registry.get_config(collection_id)
        if config is None:
            return Response(
                {"detail": "Revenue configuration not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(CollectionRevenueConfigSerializer(config).data)

    def put(self, request, collection_id: int):
        ctx = authorization_context_for(request.user)
        serializer = RevenueConfigUpsertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            config = share_registry.upsert_config(
                ctx,
                collection_id,
                serializer.validated_data,
                request=request,
            )
        except DjangoValidationError as exc:
            return _bad_request(exc)

        return Response(CollectionRevenueConfigSerializer(config).data, status=status.HTTP_200_OK)


class CollectionShareListCreateAPIView(APIView):
    def get(self, request, collection_id: int):
        authorization_context_for(request.user).require_manage(collection_id)
        try:
            as_of = _query_datetime(request, "as_of")
        except DjangoValidationError as exc:
            return _bad_request(exc)

        shares = share_registry.list_active_shares(collection_id, as_of)
        return Response(
            {
                "results": IndividualShareSerializer(shares, many=True).data,
                "owner_remainder_percentage": str(
                    share_registry.owner_remainder_percentage(collection_id, as_of)
                ),
            }
        )

    def post(self, request, collection_id: int):
        ctx = authorization_context_for(request.user)
        serializer = IndividualShareWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            share = share_registry.set_individual_share(
                ctx,
                collection_id,
                serializer.beneficiary(),
                share_type=data["share_type"],
                percentage=data.get("share_percentage"),
                fixed_amount=data.get("fixed_amount"),
                effective_from=data.get("effective_from"),
                effective_until=data.get("effective_until"),
                request=request,
            )
        except DjangoValidationError as exc:
            return _bad_request(exc)

        return Response(IndividualShareSerializer(share).data, status=status.HTTP_201_CREATED)


class ShareDeactivateAPIView(APIView):
    def post(self, request, share_id: int):
        ctx = authorization_context_for(request.user)
        try:
            share = share_registry.deactivate_individual_share(ctx, share_id, request=request)
        except DjangoValidationError as exc:
            return Response({"detail": _error_detail(exc)}, status=status.HTTP_404_NOT_FOUND)
        return Response(IndividualShareSerializer(share).data)


class CollectionAttributionListCreateAPIView(APIView):
    def get(self, request, collection_id: int):
        authorization_context_for(request.user).require_manage(collection_id)
        include_inactive = (request.query_params.get("include_inactive") or "").lower() in ("1", "true", "yes")
        rows = attribution.list_attributions(collection_id, include_inactive=include_inactive)
        return Response(ItemAttributionSerializer(rows, many=True).data)

    def post(self, request, collection_id: int):
        ctx = authorization_context_for(request.user)
        serializer = ItemAttributionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            row = attribution.register_item_creator(
                ctx,
                collection_id=collection_id,
                item_id=data["item_id"],
                item_type=data["item_type"],
                creator_id=data["creator_id"],
                override_percentage=data.get("override_percentage"),
                request=request,
            )
        except DjangoValidationError as exc:
            return _bad_request(exc)

        if row is None:
            return Response(
                {"detail": "Only collaborators are attributed per item."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(ItemAttributionSerializer(row).data, status=status.HTTP_201_CREATED)


class CollectionRevenueEventListAPIView(APIView):
    def get(self, request, collection_id: int):
        authorization_context_for(request.user).require_manage(collection_id)
        try:
            events = ledger.list_revenue_events(
                collection_id,
                status=(request.query_params.get("status") or "").strip().lower() or None,
                product_id=_query_int(request, "product_id"),
                since=_query_datetime(request, "since"),
                until=_query_datetime(request, "until"),
                limit=_query_int(request, "limit"),
            )
        except DjangoValidationError as exc:
            return _bad_request(exc)
        return Response(RevenueEventSerializer(events, many=True).data)


class CollectionSplitPreviewAPIView(APIView):
    def post(self, request, collection_id: int):
        ctx = authorization_context_for(request.user)
        serializer = SplitPreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            entries = splits.preview_splits(
                ctx,
                collection_id,
                total_amount=data["total_amount"],
                currency=data.get("currency") or None,
                product_id=data.get("product_id"),
                category_id=data.get("category_id"),
            )
        except DjangoValidationError as exc:
            return _bad_request(exc)
        return Response({"splits": entries})


class RevenueEventTransitionAPIView(APIView):
    """POST /events/<id>/<process|fail|dispute|retry>/"""

    def post(self, request, event_id: int, action: str):
        ctx = authorization_context_for(request.user)
        serializer = EventTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            if action == "process":
                event = ledger.mark_processed(
                    ctx,
                    event_id,
                    transaction_hash=data["transaction_hash"],
                    block_number=data.get("block_number"),
                    request=request,
                )
            elif action == "fail":
                event = ledger.mark_failed(ctx, event_id, data["reason"], request=request)
            elif action == "dispute":
                event = ledger.mark_disputed(ctx, event_id, data["reason"], request=request)
            elif action == "retry":
                event = ledger.retry_event(ctx, event_id, data["reason"], request=request)
            else:
                return Response({"detail": f"Unknown action '{action}'."}, status=status.HTTP_404_NOT_FOUND)
        except ledger.InvalidStateTransition as exc:
            return Response({"detail": _error_detail(exc)}, status=status.HTTP_409_CONFLICT)
        except DjangoValidationError as exc:
            return _bad_request(exc)

        logger.info("revenue.api.event_action event_id=%s action=%s actor_id=%s", event_id, action, ctx.actor_id)
        return Response(RevenueEventSerializer(event).data)
