from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

_MUTABLE_FIELDS = frozenset(("status", "status_reason", "processed_at", "transaction_hash", "block_number", "updated_at"))


class RevenueEvent(models.Model):
    """Immutable per-sale record of a computed distribution.

    `revenue_splits` is frozen at creation. Only the settlement status (and the
    settlement metadata that accompanies a status change) may move afterwards;
    corrections are new compensating events.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSED = "processed", "Processed"
        FAILED = "failed", "Failed"
        DISPUTED = "disputed", "Disputed"

    STATUS_TRANSITIONS = {
        Status.PENDING: frozenset((Status.PROCESSED, Status.FAILED)),
        Status.PROCESSED: frozenset((Status.DISPUTED,)),
        Status.FAILED: frozenset((Status.PENDING,)),
        Status.DISPUTED: frozenset(),
    }

    collection = models.ForeignKey(
        "marketplace.Collection",
        on_delete=models.CASCADE,
        related_name="revenue_events",
    )
    product = models.ForeignKey(
        "marketplace.Product",
        on_delete=models.SET_NULL,
        related_name="revenue_events",
        null=True,
        blank=True,
    )
    category = models.ForeignKey(
        "marketplace.Category",
        on_delete=models.SET_NULL,
        related_name="revenue_events",
        null=True,
        blank=True,
    )
    order_id = models.CharField(max_length=64, blank=True, db_index=True)
    total_amount = models.DecimalField(
        max_digits=20,
        decimal_places=9,
        validators=[MinValueValidator(0)],
    )
    currency = models.CharField(max_length=12)
    primary_contributor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
        help_text="The user who made the sale, when known.",
    )
    item_creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    revenue_splits = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    transaction_hash = models.CharField(max_length=128, blank=True)
    settlement_contract_address = models.CharField(max_length=128, blank=True)
    block_number = models.BigIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    status_reason = models.TextField(blank=True)
    sale_date = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-sale_date", "-id")
        verbose_name = "Revenue Event"
        verbose_name_plural = "Revenue Events"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="ck_rev_event_total_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=("collection", "sale_date"), name="idx_rev_event_coll_date"),
            models.Index(fields=("status",), name="idx_rev_event_status"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"RevenueEvent {self.id} {self.total_amount} {self.currency} [{self.status}]"

    @classmethod
    def can_transition_status(cls, current_status: str, target_status: str) -> bool:
        return target_status in cls.STATUS_TRANSITIONS.get(current_status, frozenset())

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= _MUTABLE_FIELDS:
                raise ValidationError(
                    "Revenue events are immutable; only status fields may be updated."
                )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # pragma: no cover - enforced behavior
        raise ValidationError("Revenue events are immutable; deletes are not allowed.")
