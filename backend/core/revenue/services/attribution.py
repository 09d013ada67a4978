from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from audit.models import AuditEntry
from audit.services import append_audit_entry
from marketplace.access import get_access_type
from marketplace.models import Category, CollectionAccess, Product
from revenue.authz import AuthorizationContext
from revenue.models import IndividualShare, ItemAttribution
from revenue.services.share_registry import get_config, to_percentage

logger = logging.getLogger(__name__)

_ITEM_MODELS = {
    ItemAttribution.ItemType.PRODUCT: Product,
    ItemAttribution.ItemType.CATEGORY: Category,
}


def _attribution_snapshot(row: ItemAttribution) -> dict:
    return {
        "id": row.id,
        "collection_id": row.collection_id,
        "item_id": row.item_id,
        "item_type": row.item_type,
        "creator_id": row.creator_id,
        "revenue_share_percentage": row.revenue_share_percentage,
        "is_active": row.is_active,
    }


def _require_item_type(item_type: str) -> str:
    if item_type not in ItemAttribution.ItemType.values:
        raise ValidationError({"item_type": f"Unknown item type '{item_type}'."})
    return item_type


def _creator_share_percentage(collection_id: int, creator_id: int, as_of: datetime) -> Decimal | None:
    # Overlapping windows: the most recently effective row wins.
    share = (
        IndividualShare.objects.filter(
            collection_id=collection_id,
            user_id=creator_id,
            is_active=True,
            share_type=IndividualShare.ShareType.PERCENTAGE,
            effective_from__lte=as_of,
        )
        .filter(Q(effective_until__isnull=True) | Q(effective_until__gt=as_of))
        .order_by("-effective_from", "id")
        .first()
    )
    return share.share_percentage if share is not None else None


def resolve_item_percentage(
    collection_id: int,
    creator_id: int,
    override_percentage: Any = None,
) -> Decimal:
    """Per-item rate: explicit override, then the creator's own share, then the collection default."""

    if override_percentage not in (None, ""):
        return to_percentage(override_percentage, field="revenue_share_percentage")

    own = _creator_share_percentage(collection_id, creator_id, timezone.now())
    if own is not None:
        return own

    config = get_config(collection_id)
    if config is None:
        return Decimal("0.00")
    return Decimal(config.collaborator_share_percentage)


def register_item_creator(
    ctx: AuthorizationContext,
    *,
    collection_id: int,
    item_id: int,
    item_type: str,
    creator_id: int,
    override_percentage: Any = None,
    request=None,
) -> ItemAttribution | None:
    """Attribute an item to the collaborator who created it.

    Returns None when the creator is not a collaborator on the collection; owners
    and editors are paid through the collection-wide shares instead. Calling it
    again with the same creator and percentage returns the active row untouched.
    """

    ctx.require_manage(collection_id)
    item_type = _require_item_type(item_type)

    model = _ITEM_MODELS[item_type]
    if not model.objects.filter(id=item_id, collection_id=collection_id).exists():
        raise ValidationError({"item_id": f"{item_type} {item_id} does not belong to this collection."})

    tier = get_access_type(collection_id, creator_id)
    if tier != CollectionAccess.ACCESS_COLLABORATOR:
        logger.debug(
            "revenue.attribution.skip collection_id=%s item=%s:%s creator_id=%s tier=%s",
            collection_id,
            item_type,
            item_id,
            creator_id,
            tier,
        )
        return None

    pct = resolve_item_percentage(collection_id, creator_id, override_percentage)

    with transaction.atomic():
        previous = list(
            ItemAttribution.objects.select_for_update()
            .filter(item_type=item_type, item_id=item_id, is_active=True)
            .order_by("id")
        )
        if (
            len(previous) == 1
            and previous[0].creator_id == creator_id
            and previous[0].collection_id == collection_id
            and previous[0].revenue_share_percentage == pct
        ):
            return previous[0]

        now = timezone.now()
        ItemAttribution.objects.filter(id__in=[row.id for row in previous]).update(
            is_active=False,
            deactivated_at=now,
            updated_at=now,
        )
        attribution = ItemAttribution.objects.create(
            collection_id=collection_id,
            item_id=item_id,
            item_type=item_type,
            creator_id=creator_id,
            revenue_share_percentage=pct,
        )
        append_audit_entry(
            collection_id=collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_UPDATE if previous else AuditEntry.ACTION_CREATE,
            event_type="revenue.attribution.register",
            resource_label=ItemAttribution._meta.label,
            resource_pk=str(attribution.id),
            request=request,
            data_before=_attribution_snapshot(previous[0]) if previous else None,
            data_after=_attribution_snapshot(attribution),
        )

    logger.info(
        "revenue.attribution.register collection_id=%s item=%s:%s creator_id=%s pct=%s",
        collection_id,
        item_type,
        item_id,
        creator_id,
        pct,
    )
    return attribution


def lookup(item_id: int, item_type: str, as_of: datetime | None = None) -> ItemAttribution | None:
    """The attribution that was active for the item at `as_of` (default: the current one)."""

    item_type = _require_item_type(item_type)
    qs = ItemAttribution.objects.filter(item_type=item_type, item_id=item_id)
    if as_of is None:
        return qs.filter(is_active=True).first()
    return (
        qs.filter(created_at__lte=as_of)
        .filter(Q(deactivated_at__isnull=True) | Q(deactivated_at__gt=as_of))
        .order_by("-created_at", "-id")
        .first()
    )


def deactivate_attribution(
    ctx: AuthorizationContext,
    *,
    item_id: int,
    item_type: str,
    request=None,
) -> ItemAttribution | None:
    current = lookup(item_id, item_type)
    if current is None:
        return None
    ctx.require_manage(current.collection_id)

    with transaction.atomic():
        current = ItemAttribution.objects.select_for_update().get(id=current.id)
        if not current.is_active:
            return current
        before = _attribution_snapshot(current)
        current.is_active = False
        current.deactivated_at = timezone.now()
        current.save(update_fields=("is_active", "deactivated_at", "updated_at"))
        append_audit_entry(
            collection_id=current.collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_DEACTIVATE,
            event_type="revenue.attribution.deactivate",
            resource_label=ItemAttribution._meta.label,
            resource_pk=str(current.id),
            request=request,
            data_before=before,
            data_after=_attribution_snapshot(current),
        )

    logger.info(
        "revenue.attribution.deactivate collection_id=%s item=%s:%s",
        current.collection_id,
        item_type,
        item_id,
    )
    return current


def list_attributions(collection_id: int, *, include_inactive: bool = False):
    qs = ItemAttribution.objects.filter(collection_id=collection_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by("-is_active", "-created_at", "-id")
