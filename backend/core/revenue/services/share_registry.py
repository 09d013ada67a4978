from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, QuerySet, Sum
from django.utils import timezone

from audit.models import AuditEntry
from audit.services import append_audit_entry
from marketplace.access import get_access_type
from marketplace.models import Collection
from revenue.authz import AuthorizationContext
from revenue.beneficiary import Beneficiary, StandaloneWallet, UserBeneficiary
from revenue.models import CollectionRevenueConfig, IndividualShare
from revenue.services.wallets import current_payout_wallet, validate_wallet_address

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_PCT = Decimal("0.01")

DEFAULT_FIELDS = (
    "owner_share_percentage",
    "editor_share_percentage",
    "collaborator_share_percentage",
    "viewer_share_percentage",
)


def to_percentage(value: Any, *, field: str) -> Decimal:
    """Parse a 0..100 percentage, or raise ValidationError keyed by `field`."""

    if value is None or value == "":
        raise ValidationError({field: f"{field} is required."})
    try:
        pct = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: f"Invalid percentage for {field}."}) from None
    if not pct.is_finite() or pct < 0 or pct > _HUNDRED:
        raise ValidationError({field: f"{field} must be between 0 and 100."})
    return pct.quantize(_PCT, rounding=ROUND_HALF_UP)


_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off", ""}


def _to_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValidationError({field: f"Invalid boolean for {field}."})


def _to_amount(value: Any, *, field: str) -> Decimal:
    if value is None or value == "":
        raise ValidationError({field: f"{field} is required."})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: f"Invalid amount for {field}."}) from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError({field: f"{field} must be greater than 0."})
    return amount


def _require_collection(collection_id: int) -> Collection:
    collection = Collection.objects.filter(id=collection_id).first()
    if collection is None:
        raise ValidationError({"collection_id": "Collection not found."})
    return collection


def _config_snapshot(config: CollectionRevenueConfig | None) -> dict | None:
    if config is None:
        return None
    return {
        "id": config.id,
        "owner_share_percentage": config.owner_share_percentage,
        "editor_share_percentage": config.editor_share_percentage,
        "collaborator_share_percentage": config.collaborator_share_percentage,
        "viewer_share_percentage": config.viewer_share_percentage,
        "split_model": config.split_model,
        "enable_individual_splits": config.enable_individual_splits,
        "settlement_contract_address": config.settlement_contract_address,
    }


def share_snapshot(share: IndividualShare) -> dict:
    return {
        "id": share.id,
        "collection_id": share.collection_id,
        "user_id": share.user_id,
        "wallet_address": share.wallet_address,
        "recipient_label": share.recipient_label,
        "access_type": share.access_type,
        "share_type": share.share_type,
        "share_percentage": share.share_percentage,
        "fixed_amount": share.fixed_amount,
        "is_active": share.is_active,
        "effective_from": share.effective_from,
        "effective_until": share.effective_until,
    }


def get_config(collection_id: int) -> CollectionRevenueConfig | None:
    return CollectionRevenueConfig.objects.filter(collection_id=collection_id).first()


def upsert_config(
    ctx: AuthorizationContext,
    collection_id: int,
    defaults: Mapping[str, Any],
    *,
    request=None,
) -> CollectionRevenueConfig:
    """Create or update the collection-wide revenue defaults.

    Fields absent from `defaults` keep their current (or model default) value.
    Calling twice with the same payload leaves one identical row and writes a
    single audit entry.
    """

    ctx.require_manage(collection_id)
    _require_collection(collection_id)

    unknown = set(defaults) - set(DEFAULT_FIELDS) - {
        "split_model",
        "enable_individual_splits",
        "settlement_contract_address",
    }
    if unknown:
        raise ValidationError({key: "Unknown revenue config field." for key in sorted(unknown)})

    with transaction.atomic():
        current = (
            CollectionRevenueConfig.objects.select_for_update()
            .filter(collection_id=collection_id)
            .first()
        )
        before = _config_snapshot(current)
        config = current or CollectionRevenueConfig(collection_id=collection_id)

        for field in DEFAULT_FIELDS:
            if field in defaults:
                setattr(config, field, to_percentage(defaults[field], field=field))
            else:
                setattr(config, field, to_percentage(getattr(config, field), field=field))

        if config.defaults_total > _HUNDRED:
            raise ValidationError(
                {"owner_share_percentage": "Default share percentages must sum to 100% or less."}
            )

        if "split_model" in defaults:
            split_model = str(defaults["split_model"] or "").strip()
            if split_model not in CollectionRevenueConfig.SplitModel.values:
                raise ValidationError({"split_model": f"Unknown split model '{split_model}'."})
            config.split_model = split_model
        if "enable_individual_splits" in defaults:
            config.enable_individual_splits = _to_bool(
                defaults["enable_individual_splits"], field="enable_individual_splits"
            )
        if "settlement_contract_address" in defaults:
            address = (defaults["settlement_contract_address"] or "").strip()
            config.settlement_contract_address = validate_wallet_address(address) if address else ""

        after = _config_snapshot(config)
        if before is not None and {**after, "id": before["id"]} == before:
            return current

        config.save()
        after["id"] = config.id
        append_audit_entry(
            collection_id=collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_UPDATE if before else AuditEntry.ACTION_CREATE,
            event_type="revenue.config.upsert",
            resource_label=CollectionRevenueConfig._meta.label,
            resource_pk=str(config.id),
            request=request,
            data_before=before,
            data_after=after,
        )

    logger.info(
        "revenue.config.upsert collection_id=%s config_id=%s split_model=%s individual=%s",
        collection_id,
        config.id,
        config.split_model,
        config.enable_individual_splits,
    )
    return config


def _beneficiary_filter(beneficiary: Beneficiary) -> Q:
    if isinstance(beneficiary, UserBeneficiary):
        return Q(user_id=beneficiary.user_id)
    return Q(user__isnull=True, wallet_address=beneficiary.address)


def _active_percentage_total(collection_id: int, *, exclude: Q) -> Decimal:
    total = (
        IndividualShare.objects.filter(
            collection_id=collection_id,
            is_active=True,
            share_type=IndividualShare.ShareType.PERCENTAGE,
        )
        .exclude(exclude)
        .aggregate(total=Sum("share_percentage"))["total"]
    )
    return Decimal(total or 0)


def set_individual_share(
    ctx: AuthorizationContext,
    collection_id: int,
    beneficiary: Beneficiary,
    *,
    share_type: str = IndividualShare.ShareType.PERCENTAGE,
    percentage: Any = None,
    fixed_amount: Any = None,
    effective_from: datetime | None = None,
    effective_until: datetime | None = None,
    request=None,
) -> IndividualShare:
    """Replace the beneficiary's active share on a collection.

    The prior active row (if any) is deactivated and a new row inserted in one
    transaction, so history stays queryable and at most one row is active.
    """

    ctx.require_manage(collection_id)
    _require_collection(collection_id)

    if share_type not in IndividualShare.ShareType.values:
        raise ValidationError({"share_type": f"Unknown share type '{share_type}'."})

    if share_type == IndividualShare.ShareType.PERCENTAGE:
        pct = to_percentage(percentage, field="share_percentage")
        if pct <= 0:
            raise ValidationError({"share_percentage": "share_percentage must be greater than 0."})
        amount = None
    else:
        amount = _to_amount(fixed_amount, field="fixed_amount")
        pct = to_percentage(percentage, field="share_percentage") if percentage not in (None, "") else Decimal("0.00")

    effective_from = effective_from or timezone.now()
    if effective_until is not None and effective_until <= effective_from:
        raise ValidationError({"effective_until": "effective_until must be after effective_from."})

    cached_wallet = ""
    if isinstance(beneficiary, UserBeneficiary):
        access_type = get_access_type(collection_id, beneficiary.user_id)
        if access_type is None:
            raise ValidationError({"user_id": "User has no access to this collection."})
        user_id, wallet_address, label = beneficiary.user_id, "", ""
        cached_wallet = current_payout_wallet(beneficiary.user_id) or ""
    elif isinstance(beneficiary, StandaloneWallet):
        wallet_address = validate_wallet_address(beneficiary.address)
        label = (beneficiary.label or "").strip()
        if not label:
            raise ValidationError({"recipient_label": "A name is required for standalone wallet shares."})
        beneficiary = StandaloneWallet(address=wallet_address, label=label)
        access_type = IndividualShare.AccessType.STANDALONE
        user_id = None
    else:
        raise ValidationError({"beneficiary": "Unsupported beneficiary."})

    match = _beneficiary_filter(beneficiary)

    with transaction.atomic():
        previous = list(
            IndividualShare.objects.select_for_update()
            .filter(match, collection_id=collection_id, is_active=True)
            .order_by("id")
        )

        if share_type == IndividualShare.ShareType.PERCENTAGE:
            others = _active_percentage_total(collection_id, exclude=match)
            if others + pct > _HUNDRED:
                raise ValidationError(
                    {
                        "share_percentage": (
                            f"Active shares would total {others + pct}%; the limit is 100%."
                        )
                    }
                )

        now = timezone.now()
        IndividualShare.objects.filter(id__in=[row.id for row in previous]).update(
            is_active=False,
            deactivated_at=now,
            updated_at=now,
        )

        share = IndividualShare.objects.create(
            collection_id=collection_id,
            user_id=user_id,
            wallet_address=wallet_address,
            recipient_label=label,
            access_type=access_type,
            share_type=share_type,
            share_percentage=pct,
            fixed_amount=amount,
            cached_wallet_address=cached_wallet,
            effective_from=effective_from,
            effective_until=effective_until,
            created_by_id=ctx.actor_id,
        )

        append_audit_entry(
            collection_id=collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_UPDATE if previous else AuditEntry.ACTION_CREATE,
            event_type="revenue.share.set",
            resource_label=IndividualShare._meta.label,
            resource_pk=str(share.id),
            request=request,
            data_before=share_snapshot(previous[0]) if previous else None,
            data_after=share_snapshot(share),
            metadata={"replaced_share_ids": [row.id for row in previous]},
        )

    logger.info(
        "revenue.share.set collection_id=%s share_id=%s replaced=%s share_type=%s access_type=%s",
        collection_id,
        share.id,
        len(previous),
        share_type,
        access_type,
    )
    return share


def deactivate_individual_share(
    ctx: AuthorizationContext,
    share_id: int,
    *,
    request=None,
) -> IndividualShare:
    """Take a share out of the active slice. The row itself is kept."""

    share = IndividualShare.objects.filter(id=share_id).first()
    if share is None:
        raise ValidationError({"share_id": "Share not found."})
    ctx.require_manage(share.collection_id)

    with transaction.atomic():
        share = IndividualShare.objects.select_for_update().get(id=share_id)
        if not share.is_active:
            return share
        before = share_snapshot(share)
        share.is_active = False
        share.deactivated_at = timezone.now()
        share.save(update_fields=("is_active", "deactivated_at", "updated_at"))
        append_audit_entry(
            collection_id=share.collection_id,
            actor_id=ctx.actor_id,
            action=AuditEntry.ACTION_DEACTIVATE,
            event_type="revenue.share.deactivate",
            resource_label=IndividualShare._meta.label,
            resource_pk=str(share.id),
            request=request,
            data_before=before,
            data_after=share_snapshot(share),
        )

    logger.info("revenue.share.deactivate collection_id=%s share_id=%s", share.collection_id, share.id)
    return share


def list_active_shares(collection_id: int, as_of: datetime | None = None) -> list[IndividualShare]:
    """Shares active and inside their validity window at `as_of` (default: now)."""

    as_of = as_of or timezone.now()
    return list(
        IndividualShare.objects.filter(
            collection_id=collection_id,
            is_active=True,
            effective_from__lte=as_of,
        )
        .filter(Q(effective_until__isnull=True) | Q(effective_until__gt=as_of))
        .select_related("user")
        .order_by("effective_from", "id")
    )


def owner_remainder_percentage(collection_id: int, as_of: datetime | None = None) -> Decimal:
    """Percentage of allocatable revenue left to the owner by the active percentage shares."""

    allocated = sum(
        (
            share.share_percentage
            for share in list_active_shares(collection_id, as_of)
            if share.share_type == IndividualShare.ShareType.PERCENTAGE
        ),
        Decimal("0"),
    )
    return max(_HUNDRED - allocated, Decimal("0"))


def share_history(collection_id: int, beneficiary: Beneficiary) -> QuerySet[IndividualShare]:
    """Every row ever written for the beneficiary, newest first."""

    return IndividualShare.objects.filter(
        _beneficiary_filter(beneficiary), collection_id=collection_id
    ).order_by("-created_at", "-id")
