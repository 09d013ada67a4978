from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q


class ItemAttribution(models.Model):
    """Binds a product or category to the collaborator who created it.

    Same history discipline as `IndividualShare`: at most one active row per item.
    """

    class ItemType(models.TextChoices):
        PRODUCT = "product", "Product"
        CATEGORY = "category", "Category"

    collection = models.ForeignKey(
        "marketplace.Collection",
        on_delete=models.CASCADE,
        related_name="item_attributions",
    )
    item_id = models.PositiveBigIntegerField()
    item_type = models.CharField(max_length=20, choices=ItemType.choices)
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="item_attributions",
    )
    revenue_share_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))],
    )
    is_active = models.BooleanField(default=True, db_index=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-is_active", "-created_at", "-id")
        verbose_name = "Item Attribution"
        verbose_name_plural = "Item Attributions"
        constraints = [
            models.CheckConstraint(
                condition=Q(revenue_share_percentage__gte=0) & Q(revenue_share_percentage__lte=100),
                name="ck_item_attr_pct_range",
            ),
            models.UniqueConstraint(
                fields=("item_type", "item_id"),
                condition=Q(is_active=True),
                name="uq_item_attr_active_item",
            ),
        ]
        indexes = [
            models.Index(fields=("item_type", "item_id"), name="idx_item_attr_item"),
            models.Index(fields=("creator",), name="idx_item_attr_creator"),
            models.Index(fields=("collection",), name="idx_item_attr_collection"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.item_type}:{self.item_id} -> user:{self.creator_id} {self.revenue_share_percentage}%"
