from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q

_PERCENT_VALIDATORS = [MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))]


class CollectionRevenueConfig(models.Model):
    """Collection-wide revenue defaults. One row per collection."""

    class SplitModel(models.TextChoices):
        OWNER_ONLY = "owner_only", "Owner only"
        EQUAL_SPLIT = "equal_split", "Equal split"
        CONTRIBUTION_BASED = "contribution_based", "Contribution based"
        CUSTOM = "custom", "Custom"

    collection = models.OneToOneField(
        "marketplace.Collection",
        on_delete=models.CASCADE,
        related_name="revenue_config",
    )
    owner_share_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("100.00"), validators=_PERCENT_VALIDATORS
    )
    editor_share_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"), validators=_PERCENT_VALIDATORS
    )
    collaborator_share_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"), validators=_PERCENT_VALIDATORS
    )
    viewer_share_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"), validators=_PERCENT_VALIDATORS
    )
    split_model = models.CharField(
        max_length=30,
        choices=SplitModel.choices,
        default=SplitModel.OWNER_ONLY,
    )
    enable_individual_splits = models.BooleanField(default=False)
    settlement_contract_address = models.CharField(
        max_length=128,
        blank=True,
        help_text="Optional on-chain settlement/split contract reference.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Collection Revenue Config"
        verbose_name_plural = "Collection Revenue Configs"
        constraints = [
            models.CheckConstraint(
                condition=Q(
                    owner_share_percentage__gte=0,
                    editor_share_percentage__gte=0,
                    collaborator_share_percentage__gte=0,
                    viewer_share_percentage__gte=0,
                ),
                name="ck_rev_config_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(
                    owner_share_percentage__lte=Decimal("100.00")
                    - F("editor_share_percentage")
                    - F("collaborator_share_percentage")
                    - F("viewer_share_percentage")
                ),
                name="ck_rev_config_sum_lte_100",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"RevenueConfig<{self.collection_id}> {self.split_model}"

    @property
    def defaults_total(self) -> Decimal:
        return (
            Decimal(self.owner_share_percentage)
            + Decimal(self.editor_share_percentage)
            + Decimal(self.collaborator_share_percentage)
            + Decimal(self.viewer_share_percentage)
        )

    def clean(self):
        super().clean()
        if self.defaults_total > Decimal("100"):
            raise ValidationError("Default share percentages must sum to 100% or less.")
