from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class IndividualShare(models.Model):
    """A per-beneficiary revenue share on a collection.

    Rows are never updated in place or hard-deleted: a new configuration for the
    same beneficiary deactivates the previous row and inserts a new one, so the
    table keeps the full history while exposing one active row per beneficiary.

    The beneficiary is exactly one of `user` or (`wallet_address`, `recipient_label`).
    """

    class ShareType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED_AMOUNT = "fixed_amount", "Fixed amount"

    class AccessType(models.TextChoices):
        OWNER = "owner", "Owner"
        EDIT = "edit", "Edit"
        VIEW = "view", "View"
        COLLABORATOR = "collaborator", "Collaborator"
        STANDALONE = "standalone", "Standalone wallet"

    collection = models.ForeignKey(
        "marketplace.Collection",
        on_delete=models.CASCADE,
        related_name="individual_shares",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="revenue_shares",
        null=True,
        blank=True,
    )
    wallet_address = models.CharField(max_length=128, blank=True)
    recipient_label = models.CharField(max_length=150, blank=True)
    access_type = models.CharField(
        max_length=20,
        choices=AccessType.choices,
        help_text="Beneficiary tier on the collection when the share was written.",
    )
    share_type = models.CharField(
        max_length=20,
        choices=ShareType.choices,
        default=ShareType.PERCENTAGE,
    )
    share_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))],
    )
    fixed_amount = models.DecimalField(max_digits=20, decimal_places=9, null=True, blank=True)
    cached_wallet_address = models.CharField(
        max_length=128,
        blank=True,
        help_text="Payout wallet seen at write time. Display only; never used for settlement.",
    )
    is_active = models.BooleanField(default=True, db_index=True)
    effective_from = models.DateTimeField(default=timezone.now)
    effective_until = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    deactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("collection_id", "-is_active", "-effective_from", "-id")
        verbose_name = "Individual Share"
        verbose_name_plural = "Individual Shares"
        constraints = [
            models.CheckConstraint(
                condition=(Q(user__isnull=False) & Q(wallet_address=""))
                | (Q(user__isnull=True) & ~Q(wallet_address="")),
                name="ck_rev_share_single_beneficiary",
            ),
            models.CheckConstraint(
                condition=Q(effective_until__isnull=True) | Q(effective_until__gt=F("effective_from")),
                name="ck_rev_share_eff_range",
            ),
            models.CheckConstraint(
                condition=~Q(share_type="fixed_amount") | Q(fixed_amount__isnull=False),
                name="ck_rev_share_fixed_amount_present",
            ),
            models.CheckConstraint(
                condition=Q(share_percentage__gte=0) & Q(share_percentage__lte=100),
                name="ck_rev_share_pct_range",
            ),
            models.UniqueConstraint(
                fields=("collection", "user"),
                condition=Q(is_active=True, user__isnull=False),
                name="uq_rev_share_active_user",
            ),
            models.UniqueConstraint(
                fields=("collection", "wallet_address"),
                condition=Q(is_active=True, user__isnull=True),
                name="uq_rev_share_active_wallet",
            ),
        ]
        indexes = [
            models.Index(fields=("collection", "is_active"), name="idx_rev_share_coll_active"),
            models.Index(fields=("user",), name="idx_rev_share_user"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        who = f"user:{self.user_id}" if self.user_id else f"wallet:{self.recipient_label}"
        return f"{who} {self.share_percentage}% ({'active' if self.is_active else 'inactive'})"

    @property
    def is_standalone_wallet(self) -> bool:
        return self.user_id is None

    def is_effective_at(self, as_of) -> bool:
        if not self.is_active or self.effective_from > as_of:
            return False
        return self.effective_until is None or self.effective_until > as_of

    def clean(self):
        super().clean()
        if self.user_id is None and not self.wallet_address:
            raise ValidationError("A share needs either a user or a standalone wallet address.")
        if self.user_id is not None and self.wallet_address:
            raise ValidationError("A share cannot target both a user and a standalone wallet.")
        if self.share_type == self.ShareType.FIXED_AMOUNT and self.fixed_amount is None:
            raise ValidationError({"fixed_amount": "fixed_amount is required for fixed-amount shares."})
