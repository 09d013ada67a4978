"""Split calculation.

`calculate_splits` is a pure function of a sale and one configuration snapshot;
it never touches the database. `load_snapshot` reads the snapshot, and
`compute_splits` glues the two together for callers that already hold the
sale-confirmation transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Iterable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError

from marketplace.models import Collection, PayoutProfile, Product
from revenue.authz import AuthorizationContext
from revenue.beneficiary import Beneficiary, StandaloneWallet, UserBeneficiary, beneficiary_of
from revenue.models import IndividualShare, ItemAttribution
from revenue.services.attribution import lookup as lookup_attribution
from revenue.services.share_registry import get_config, list_active_shares
from revenue.services.wallets import WalletResolution, resolve_for_split

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_PCT = Decimal("0.01")

SHARE_TYPE_COLLABORATOR_ITEM = "collaborator_item"
SHARE_TYPE_OWNER = "owner"
SHARE_TYPE_STANDALONE_WALLET = "standalone_wallet"

METHOD_ITEM_ATTRIBUTION = "item_attribution"
METHOD_INDIVIDUAL_SHARE = "individual_share"
METHOD_FIXED_AMOUNT = "fixed_amount"
METHOD_REMAINDER = "remainder"
METHOD_NO_CONFIG = "no_config"
METHOD_FALLBACK = "fallback"


class SplitInvariantError(AssertionError):
    """The emitted splits do not add up to the sale total. Always a defect."""


@dataclass(frozen=True, slots=True)
class SaleContext:
    collection_id: int
    total_amount: Decimal
    currency: str
    product_id: int | None = None
    category_id: int | None = None
    sale_actor_id: int | None = None


@dataclass(frozen=True, slots=True)
class ShareTerm:
    share_id: int
    beneficiary: Beneficiary
    recipient_label: str
    access_type: str
    share_type: str
    percentage: Decimal
    fixed_amount: Decimal | None = None


@dataclass(frozen=True, slots=True)
class AttributionTerm:
    item_id: int
    item_type: str
    creator_id: int
    creator_label: str
    percentage: Decimal


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    owner_id: int
    owner_label: str = ""
    has_config: bool = False
    enable_individual_splits: bool = False
    shares: tuple[ShareTerm, ...] = ()
    attribution: AttributionTerm | None = None


@dataclass(frozen=True, slots=True)
class SplitEntry:
    beneficiary: Beneficiary
    recipient_label: str
    amount: Decimal
    percentage: Decimal
    share_type: str
    calculation_method: str
    wallet_address: str | None
    unresolved_wallet: bool = False
    item_id: int | None = None
    item_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Durable shape stored on RevenueEvent.revenue_splits."""

        data: dict[str, Any] = {
            "beneficiary_id": (
                self.beneficiary.user_id if isinstance(self.beneficiary, UserBeneficiary) else None
            ),
            "wallet_address": self.wallet_address,
            "recipient_label": self.recipient_label,
            "amount": str(self.amount),
            "percentage": str(self.percentage),
            "share_type": self.share_type,
            "calculation_method": self.calculation_method,
            "unresolved_wallet": self.unresolved_wallet,
        }
        if self.item_id is not None:
            data["item_id"] = self.item_id
            data["item_type"] = self.item_type
        return data


@dataclass(slots=True)
class _Allocation:
    beneficiary: Beneficiary
    recipient_label: str
    amount: Decimal
    percentage: Decimal
    share_type: str
    calculation_method: str
    item_id: int | None = None
    item_type: str | None = None
    is_owner: bool = field(default=False)


def currency_precision(currency: str | None) -> int:
    code = (currency or "").strip().upper()
    precision_map = getattr(settings, "REVENUE_CURRENCY_PRECISION", {}) or {}
    if code in precision_map:
        return int(precision_map[code])
    return int(getattr(settings, "REVENUE_DEFAULT_PRECISION", 2))


def parse_total_amount(value: Any) -> Decimal:
    """Parse a sale total, or raise ValidationError before anything is computed."""

    if value is None or value == "":
        raise ValidationError({"total_amount": "total_amount is required."})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({"total_amount": "Invalid total_amount."}) from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError({"total_amount": "total_amount must be zero or greater."})
    return amount


def _quantum(precision: int) -> Decimal:
    return Decimal(1).scaleb(-precision)


def _round_money(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def parse_sale_total(value: Any, currency: str) -> Decimal:
    """Parse a sale total that must already be expressed in the currency's minor unit.

    Returns the amount quantized to that unit, so every split derived from it
    (the owner remainder included) carries the same precision.
    """

    amount = parse_total_amount(value)
    try:
        quantized = amount.quantize(_quantum(currency_precision(currency)))
    except InvalidOperation:
        raise ValidationError({"total_amount": "total_amount is too large."}) from None
    if quantized != amount:
        raise ValidationError(
            {"total_amount": f"total_amount has more decimal places than {currency} allows."}
        )
    return quantized


def _share_type_tag(term: ShareTerm) -> str:
    if isinstance(term.beneficiary, StandaloneWallet):
        return SHARE_TYPE_STANDALONE_WALLET
    return term.access_type


def _effective_percentage(amount: Decimal, total: Decimal) -> Decimal:
    if total <= 0:
        return _HUNDRED.quantize(_PCT)
    return (amount * _HUNDRED / total).quantize(_PCT, rounding=ROUND_HALF_UP)


def _absorb_deficit(allocations: list[_Allocation], deficit: Decimal) -> None:
    """Take a negative rounding difference out of the largest tuples first."""

    for allocation in sorted(allocations, key=lambda a: a.amount, reverse=True):
        take = max(deficit, -allocation.amount)
        allocation.amount += take
        deficit -= take
        if deficit == 0:
            return
    raise SplitInvariantError(f"Unable to absorb rounding difference {deficit}.")


def calculate_splits(
    sale: SaleContext,
    snapshot: ConfigSnapshot,
    *,
    resolve_wallet: Callable[[Beneficiary], WalletResolution] = resolve_for_split,
) -> list[SplitEntry]:
    """Divide `sale.total_amount` among attribution, individual shares and the owner.

    1. Item attribution carves its percentage of the total for the item creator.
    2. With individual splits enabled, fixed amounts are paid from what is left,
       then each percentage share takes its percentage of the remaining pool.
       The item creator and collaborator-tier shares are skipped here.
    3. Whatever is left goes to the owner.

    Amounts are rounded to the currency's minor unit; the rounding difference is
    absorbed so the entries always sum exactly to the total.
    """

    total = Decimal(sale.total_amount)
    if not total.is_finite() or total < 0:
        raise SplitInvariantError(f"Invalid sale total {sale.total_amount!r}.")

    quantum = _quantum(currency_precision(sale.currency))
    remaining = total
    allocations: list[_Allocation] = []
    paid_user_ids: set[int] = set()

    term = snapshot.attribution
    if term is not None and term.percentage > 0:
        amount = min(total * term.percentage / _HUNDRED, remaining)
        allocations.append(
            _Allocation(
                beneficiary=UserBeneficiary(term.creator_id),
                recipient_label=term.creator_label,
                amount=amount,
                percentage=term.percentage,
                share_type=SHARE_TYPE_COLLABORATOR_ITEM,
                calculation_method=METHOD_ITEM_ATTRIBUTION,
                item_id=term.item_id,
                item_type=term.item_type,
            )
        )
        remaining -= amount
        paid_user_ids.add(term.creator_id)

    owner_share: _Allocation | None = None
    if snapshot.enable_individual_splits:
        eligible = [
            share
            for share in snapshot.shares
            if share.access_type != IndividualShare.AccessType.COLLABORATOR
            and not (
                isinstance(share.beneficiary, UserBeneficiary)
                and share.beneficiary.user_id in paid_user_ids
            )
        ]
        fixed = [s for s in eligible if s.share_type == IndividualShare.ShareType.FIXED_AMOUNT]
        percent = [s for s in eligible if s.share_type == IndividualShare.ShareType.PERCENTAGE]

        for share in fixed:
            amount = min(Decimal(share.fixed_amount or 0), remaining)
            allocations.append(
                _Allocation(
                    beneficiary=share.beneficiary,
                    recipient_label=share.recipient_label,
                    amount=amount,
                    percentage=_effective_percentage(amount, total),
                    share_type=_share_type_tag(share),
                    calculation_method=METHOD_FIXED_AMOUNT,
                )
            )
            remaining -= amount

        pool = remaining
        for share in percent:
            amount = min(pool * share.percentage / _HUNDRED, remaining)
            allocations.append(
                _Allocation(
                    beneficiary=share.beneficiary,
                    recipient_label=share.recipient_label,
                    amount=amount,
                    percentage=share.percentage,
                    share_type=_share_type_tag(share),
                    calculation_method=METHOD_INDIVIDUAL_SHARE,
                )
            )
            remaining -= amount

        owner = UserBeneficiary(snapshot.owner_id)
        owner_share = next(
            (a for a in allocations if a.beneficiary == owner and a.share_type != SHARE_TYPE_COLLABORATOR_ITEM),
            None,
        )

    for allocation in allocations:
        allocation.amount = _round_money(allocation.amount, quantum)

    # The owner takes whatever rounding left over, so the sum is exact by construction.
    owner_amount = total - sum((a.amount for a in allocations), Decimal("0"))
    if owner_share is not None:
        owner_share.is_owner = True
        owner_share.amount += owner_amount
        owner_tuple = owner_share
    else:
        owner_tuple = _Allocation(
            beneficiary=UserBeneficiary(snapshot.owner_id),
            recipient_label=snapshot.owner_label,
            amount=owner_amount,
            percentage=Decimal("0"),
            share_type=SHARE_TYPE_OWNER,
            calculation_method=METHOD_REMAINDER if snapshot.has_config else METHOD_NO_CONFIG,
            is_owner=True,
        )
        allocations.append(owner_tuple)

    if owner_tuple.amount < 0:
        deficit = owner_tuple.amount
        owner_tuple.amount = Decimal("0")
        _absorb_deficit([a for a in allocations if not a.is_owner], deficit)

    for allocation in allocations:
        if allocation.is_owner or allocation.calculation_method == METHOD_FIXED_AMOUNT:
            allocation.percentage = _effective_percentage(allocation.amount, total)

    kept = [a for a in allocations if a.is_owner or a.amount != 0]
    if len(kept) > 1:
        kept = [a for a in kept if a.amount != 0]

    emitted = sum((a.amount for a in kept), Decimal("0"))
    if emitted != total or any(a.amount < 0 for a in kept):
        raise SplitInvariantError(
            f"Split amounts sum to {emitted}, expected {total} (collection {sale.collection_id})."
        )

    entries: list[SplitEntry] = []
    for allocation in kept:
        resolution = resolve_wallet(allocation.beneficiary)
        if resolution.unresolved:
            logger.warning(
                "revenue.splits.unresolved_wallet collection_id=%s user_id=%s",
                sale.collection_id,
                getattr(allocation.beneficiary, "user_id", None),
            )
        entries.append(
            SplitEntry(
                beneficiary=allocation.beneficiary,
                recipient_label=allocation.recipient_label,
                amount=allocation.amount,
                percentage=allocation.percentage,
                share_type=allocation.share_type,
                calculation_method=allocation.calculation_method,
                wallet_address=resolution.address,
                unresolved_wallet=resolution.unresolved,
                item_id=allocation.item_id,
                item_type=allocation.item_type,
            )
        )
    return entries


def owner_fallback_splits(
    sale: SaleContext,
    owner_id: int,
    *,
    owner_label: str = "",
    resolve_wallet: Callable[[Beneficiary], WalletResolution] = resolve_for_split,
) -> list[SplitEntry]:
    """Flat owner-takes-all distribution, used when the regular calculation fails."""

    owner = UserBeneficiary(owner_id)
    resolution = resolve_wallet(owner)
    return [
        SplitEntry(
            beneficiary=owner,
            recipient_label=owner_label,
            amount=Decimal(sale.total_amount),
            percentage=_HUNDRED.quantize(_PCT),
            share_type=SHARE_TYPE_OWNER,
            calculation_method=METHOD_FALLBACK,
            wallet_address=resolution.address,
            unresolved_wallet=resolution.unresolved,
        )
    ]


def user_labels(user_ids: Iterable[int]) -> dict[int, str]:
    """Display labels for users: payout profile name, falling back to the username."""

    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    labels = {
        uid: name
        for uid, name in PayoutProfile.objects.filter(user_id__in=ids)
        .exclude(display_name="")
        .values_list("user_id", "display_name")
    }
    for uid, username in get_user_model().objects.filter(id__in=ids - set(labels)).values_list(
        "id", "username"
    ):
        labels[uid] = username
    return labels


def _find_attribution(
    collection_id: int,
    product_id: int | None,
    category_id: int | None,
    as_of: datetime | None,
) -> ItemAttribution | None:
    candidates = []
    if product_id is not None:
        candidates.append((product_id, ItemAttribution.ItemType.PRODUCT))
    if category_id is not None:
        candidates.append((category_id, ItemAttribution.ItemType.CATEGORY))
    for item_id, item_type in candidates:
        row = lookup_attribution(item_id, item_type, as_of)
        if row is not None and row.collection_id == collection_id:
            return row
    return None


def load_snapshot(
    collection_id: int,
    *,
    product_id: int | None = None,
    category_id: int | None = None,
    as_of: datetime | None = None,
) -> ConfigSnapshot:
    """Read everything `calculate_splits` needs for one sale."""

    owner_id = Collection.objects.filter(id=collection_id).values_list("owner_id", flat=True).first()
    if owner_id is None:
        raise ValidationError({"collection_id": "Collection not found."})

    if product_id is not None and category_id is None:
        category_id = Product.objects.filter(id=product_id).values_list("category_id", flat=True).first()

    config = get_config(collection_id)
    individual = bool(config and config.enable_individual_splits)
    rows = list_active_shares(collection_id, as_of) if individual else []
    found = _find_attribution(collection_id, product_id, category_id, as_of)

    labels = user_labels(
        [owner_id]
        + [row.user_id for row in rows if row.user_id is not None]
        + ([found.creator_id] if found is not None else [])
    )

    shares = tuple(
        ShareTerm(
            share_id=row.id,
            beneficiary=beneficiary_of(row),
            recipient_label=row.recipient_label or labels.get(row.user_id, ""),
            access_type=row.access_type,
            share_type=row.share_type,
            percentage=Decimal(row.share_percentage),
            fixed_amount=Decimal(row.fixed_amount) if row.fixed_amount is not None else None,
        )
        for row in rows
    )
    attribution = None
    if found is not None:
        attribution = AttributionTerm(
            item_id=found.item_id,
            item_type=found.item_type,
            creator_id=found.creator_id,
            creator_label=labels.get(found.creator_id, ""),
            percentage=Decimal(found.revenue_share_percentage),
        )

    return ConfigSnapshot(
        owner_id=owner_id,
        owner_label=labels.get(owner_id, ""),
        has_config=config is not None,
        enable_individual_splits=individual,
        shares=shares,
        attribution=attribution,
    )


def compute_splits(sale: SaleContext, *, as_of: datetime | None = None) -> list[SplitEntry]:
    snapshot = load_snapshot(
        sale.collection_id,
        product_id=sale.product_id,
        category_id=sale.category_id,
        as_of=as_of,
    )
    return calculate_splits(sale, snapshot)


def preview_splits(
    ctx: AuthorizationContext,
    collection_id: int,
    *,
    total_amount: Any,
    currency: str | None = None,
    product_id: int | None = None,
    category_id: int | None = None,
) -> list[dict[str, Any]]:
    """What a sale would yield right now, without recording anything."""

    ctx.require_manage(collection_id)
    currency = (currency or settings.REVENUE_DEFAULT_CURRENCY).strip().upper()
    sale = SaleContext(
        collection_id=collection_id,
        total_amount=parse_sale_total(total_amount, currency),
        currency=currency,
        product_id=product_id,
        category_id=category_id,
    )
    return [entry.to_dict() for entry in compute_splits(sale)]
