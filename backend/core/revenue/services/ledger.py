from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from audit.models import AuditEntry
from audit.services import append_audit_entry
from marketplace.models import Category, Collection, Product
from revenue.authz import AuthorizationContext
from revenue.models import RevenueEvent
from revenue.services.splits import (
    SaleContext,
    SplitInvariantError,
    calculate_splits,
    load_snapshot,
    owner_fallback_splits,
    parse_sale_total,
    user_labels,
)

logger = logging.getLogger(__name__)

_SETTLEMENT_KEYS = ("transaction_hash", "settlement_contract_address", "block_number")


class InvalidStateTransition(ValidationError):
    """Illegal ledger status change."""


def _normalize_currency(currency: str | None) -> str:
    code = (currency or settings.REVENUE_DEFAULT_CURRENCY or "").strip().upper()
    if not code:
        raise ValidationError({"currency": "currency is required."})
    if len(code) > 12:
        raise ValidationError({"currency": "Invalid currency code."})
    return code


def _settlement_fields(settlement_meta: Mapping[str, Any] | None) -> dict[str, Any]:
    meta = dict(settlement_meta or {})
    unknown = set(meta) - set(_SETTLEMENT_KEYS)
    if unknown:
        raise ValidationError({key: "Unknown settlement field." for key in sorted(unknown)})

    block_number = meta.get("block_number")
    if block_number in (None, ""):
        block_number = None
    else:
        try:
            block_number = int(block_number)
        except (TypeError, ValueError):
            raise ValidationError({"block_number": "block_number must be an integer."}) from None
        if block_number < 0:
            raise ValidationError({"block_number": "block_number must be zero or greater."})

    return {
        "transaction_hash": str(meta.get("transaction_hash") or "").strip(),
        "settlement_contract_address": str(meta.get("settlement_contract_address") or "").strip(),
        "block_number": block_number,
    }


def _split_total(splits: list[Mapping[str, Any]]) -> Decimal:
    try:
        return sum((Decimal(str(entry["amount"])) for entry in splits), Decimal("0"))
    except (KeyError, TypeError, ArithmeticError):
        raise ValidationError({"revenue_splits": "Every split entry needs a numeric amount."}) from None


def record_revenue_event(
    *,
    collection_id: int,
    total_amount: Any,
    currency: str | None,
    splits: list[Mapping[str, Any]],
    product_id: int | None = None,
    category_id: int | None = None,
    order_id: str = "",
    primary_contributor_id: int | None = None,
    item_creator_id: int | None = None,
    settlement_meta: Mapping[str, Any] | None = None,
    sale_date: datetime | None = None,
) -> RevenueEvent:
    """Persist one computed distribution.

    The event is created `processed` when a transaction hash is supplied,
    `pending` otherwise. Splits are frozen from here on.
    """

    currency = _normalize_currency(currency)
    total = parse_sale_total(total_amount, currency)
    if not splits:
        raise ValidationError({"revenue_splits": "At least one split entry is required."})
    if _split_total(splits) != total:
        raise ValidationError({"revenue_splits": "Split amounts must sum to total_amount."})

    settlement = _settlement_fields(settlement_meta)
    status = RevenueEvent.Status.PROCESSED if settlement["transaction_hash"] else RevenueEvent.Status.PENDING
    now = timezone.now()

    event = RevenueEvent.objects.create(
        collection_id=collection_id,
        product_id=product_id,
        category_id=category_id,
        order_id=(order_id or "").strip(),
        total_amount=total,
        currency=currency,
        primary_contributor_id=primary_contributor_id,
        item_creator_id=item_creator_id,
        revenue_splits=[dict(entry) for entry in splits],
        status=status,
        processed_at=now if status == RevenueEvent.Status.PROCESSED else None,
        sale_date=sale_date or now,
        **settlement,
    )
    logger.info(
        "revenue.event.recorded event_id=%s collection_id=%s total=%s currency=%s splits=%s status=%s",
        event.id,
        collection_id,
        total,
        currency,
        len(splits),
        status,
    )
    return event


def _item_creator_id(product_id: int | None, category_id: int | None) -> int | None:
    if product_id is not None:
        creator = Product.objects.filter(id=product_id).values_list("created_by_id", flat=True).first()
        if creator is not None:
            return creator
    if category_id is not None:
        return Category.objects.filter(id=category_id).values_list("created_by_id", flat=True).first()
    return None


def record_item_revenue_event(
    collection_id: int,
    *,
    total_amount: Any,
    currency: str | None = None,
    product_id: int | None = None,
    category_id: int | None = None,
    sale_actor_id: int | None = None,
    order_id: str = "",
    settlement_meta: Mapping[str, Any] | None = None,
) -> int:
    """Compute and record the distribution of one completed sale. Returns the event id.

    Meant to run inside the caller's sale-confirmation transaction. A defect in
    split calculation never fails the sale: the event is recorded with a flat
    owner-takes-all distribution instead.
    """

    currency = _normalize_currency(currency)
    total = parse_sale_total(total_amount, currency)
    owner_id = Collection.objects.filter(id=collection_id).values_list("owner_id", flat=True).first()
    if owner_id is None:
        raise ValidationError({"collection_id": "Collection not found."})

    sale = SaleContext(
        collection_id=collection_id,
        total_amount=total,
        currency=currency,
        product_id=product_id,
        category_id=category_id,
        sale_actor_id=sale_actor_id,
    )

    with transaction.atomic():
        try:
            snapshot = load_snapshot(collection_id, product_id=product_id, category_id=category_id)
            entries = calculate_splits(sale, snapshot)
        except SplitInvariantError:
            logger.exception(
                "revenue.splits.fallback collection_id=%s product_id=%s category_id=%s total=%s",
                collection_id,
                product_id,
                category_id,
                total,
            )
            entries = owner_fallback_splits(
                sale,
                owner_id,
                owner_label=user_labels([owner_id]).get(owner_id, ""),
            )

        event = record_revenue_event(
            collection_id=collection_id,
            total_amount=total,
            currency=currency,
            splits=[entry.to_dict() for entry in entries],
            product_id=product_id,
            category_id=category_id,
            order_id=order_id,
            primary_contributor_id=sale_actor_id,
            item_creator_id=_item_creator_id(product_id, category_id),
            settlement_meta=settlement_meta,
        )
    return event.id


def _event_snapshot(event: RevenueEvent) -> dict:
    return {
        "id": event.id,
        "status": event.status,
        "status_reason": event.status_reason,
        "transaction_hash": event.transaction_hash,
        "block_number": event.block_number,
        "processed_at": event.processed_at,
    }


def _transition(
    ctx: AuthorizationContext,
    event_id: int,
    target: str,
    *,
    reason: str = "",
    request=None,
    **changes: Any,
) -> RevenueEvent:
    with transaction.atomic():
        event = RevenueEvent.objects.select_for_update().filter(id=event_id).first()
        if event is None:
            raise ValidationError({"event_id": "Revenue event not found."})
        ctx.require_manage(event.collection_id)

        current = event.status
        if not RevenueEvent.can_transition_status(current, target):
            raise InvalidStateTransition(f"Invalid status transition: {current} -> {target}.")

        before = _event_snapshot(event)
        event.status = target
        event.status_reason = (reason or "").strip()
        update_fields = ["status", "status_reason", "updated_at"]
        for name, value in changes.items():
            setattr(event, name, value)
            update_fields.append(name)
        event.save(update_fields=update_fields)

        append_audit_entry(
            collection_id=event.collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_TRANSITION,
            event_type=f"revenue.event.{target}",
            resource_label=RevenueEvent._meta.label,
            resource_pk=str(event.id),
            request=request,
            data_before=before,
            data_after=_event_snapshot(event),
        )

    logger.info("revenue.event.transition event_id=%s from=%s to=%s", event.id, current, target)
    return event


def mark_processed(
    ctx: AuthorizationContext,
    event_id: int,
    *,
    transaction_hash: str,
    block_number: int | None = None,
    request=None,
) -> RevenueEvent:
    settlement = _settlement_fields({"transaction_hash": transaction_hash, "block_number": block_number})
    if not settlement["transaction_hash"]:
        raise ValidationError({"transaction_hash": "transaction_hash is required."})
    return _transition(
        ctx,
        event_id,
        RevenueEvent.Status.PROCESSED,
        request=request,
        transaction_hash=settlement["transaction_hash"],
        block_number=settlement["block_number"],
        processed_at=timezone.now(),
    )


def mark_failed(ctx: AuthorizationContext, event_id: int, reason: str, *, request=None) -> RevenueEvent:
    return _transition(ctx, event_id, RevenueEvent.Status.FAILED, reason=reason, request=request)


def mark_disputed(ctx: AuthorizationContext, event_id: int, reason: str, *, request=None) -> RevenueEvent:
    return _transition(ctx, event_id, RevenueEvent.Status.DISPUTED, reason=reason, request=request)


def retry_event(ctx: AuthorizationContext, event_id: int, reason: str = "", *, request=None) -> RevenueEvent:
    """failed -> pending; settlement is attempted again by the external settler."""

    return _transition(ctx, event_id, RevenueEvent.Status.PENDING, reason=reason, request=request)


def list_revenue_events(
    collection_id: int,
    *,
    status: str | None = None,
    product_id: int | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = None,
) -> QuerySet[RevenueEvent]:
    max_limit = int(getattr(settings, "REVENUE_EVENT_HISTORY_MAX_LIMIT", 500))
    if status and status not in RevenueEvent.Status.values:
        raise ValidationError({"status": f"Unknown status '{status}'."})
    if since and until and since > until:
        raise ValidationError({"since": "since must be before until."})

    qs = RevenueEvent.objects.filter(collection_id=collection_id)
    if status:
        qs = qs.filter(status=status)
    if product_id is not None:
        qs = qs.filter(product_id=product_id)
    if since is not None:
        qs = qs.filter(sale_date__gte=since)
    if until is not None:
        qs = qs.filter(sale_date__lt=until)

    limit = max_limit if limit is None else max(1, min(int(limit), max_limit))
    return qs.order_by("-sale_date", "-id")[:limit]
