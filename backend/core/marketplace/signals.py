from __future__ import annotations

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from marketplace.models import Category, PayoutProfile, Product
from revenue.authz import SYSTEM_CONTEXT
from revenue.models import IndividualShare, ItemAttribution
from revenue.services.attribution import register_item_creator

logger = logging.getLogger(__name__)


def _register(instance, item_type: str) -> None:
    if instance.created_by_id is None:
        return
    register_item_creator(
        SYSTEM_CONTEXT,
        collection_id=instance.collection_id,
        item_id=instance.id,
        item_type=item_type,
        creator_id=instance.created_by_id,
    )


@receiver(post_save, sender=Product)
def register_product_attribution(sender, instance: Product, created: bool, **_kwargs):
    """Collaborator-created products are attributed to their creator on insert."""

    if created:
        _register(instance, ItemAttribution.ItemType.PRODUCT)


@receiver(post_save, sender=Category)
def register_category_attribution(sender, instance: Category, created: bool, **_kwargs):
    if created:
        _register(instance, ItemAttribution.ItemType.CATEGORY)


@receiver(post_save, sender=PayoutProfile)
def sync_cached_share_wallets(sender, instance: PayoutProfile, **_kwargs):
    """Keep the display copy of the payout wallet on active shares in step with the profile.

    A queryset update: the cached column is not part of a share's versioned terms.
    """

    wallet = (instance.payout_wallet or "").strip()
    updated = (
        IndividualShare.objects.filter(user_id=instance.user_id, is_active=True)
        .exclude(cached_wallet_address=wallet)
        .update(cached_wallet_address=wallet)
    )
    if updated:
        logger.info("marketplace.payout_wallet.synced user_id=%s shares=%s", instance.user_id, updated)
