from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class AuditEntry(models.Model):
    """Append-only, hash-chained audit record of revenue configuration changes.

    One chain per collection (`collection:<id>`) plus a `platform` chain for
    entries that are not tied to a collection. Each entry hashes the previous
    entry of its chain, so an edited or removed row breaks verification.
    """

    ACTION_CREATE = "CREATE"
    ACTION_UPDATE = "UPDATE"
    ACTION_DEACTIVATE = "DEACTIVATE"
    ACTION_TRANSITION = "TRANSITION"
    ACTION_CHOICES = [
        (ACTION_CREATE, "Create"),
        (ACTION_UPDATE, "Update"),
        (ACTION_DEACTIVATE, "Deactivate"),
        (ACTION_TRANSITION, "Transition"),
    ]

    collection = models.ForeignKey(
        "marketplace.Collection",
        on_delete=models.SET_NULL,
        related_name="audit_entries",
        null=True,
        blank=True,
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    actor_label = models.CharField(max_length=150, blank=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    event_type = models.CharField(max_length=120)
    resource_label = models.CharField(max_length=200)
    resource_pk = models.CharField(max_length=64, blank=True)
    occurred_at = models.DateTimeField(default=timezone.now)
    request_id = models.UUIDField(null=True, blank=True)

    chain_id = models.CharField(max_length=80, db_index=True)
    prev_hash = models.CharField(max_length=64, blank=True, default="")
    entry_hash = models.CharField(max_length=64, unique=True)

    data_before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    data_after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ("-occurred_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=("chain_id", "prev_hash"),
                name="uq_audit_prev_hash_per_chain",
            ),
        ]
        indexes = [
            models.Index(fields=("chain_id", "occurred_at"), name="idx_audit_chain_occurred"),
        ]
        verbose_name = "Audit Entry"
        verbose_name_plural = "Audit Entries"

    def __str__(self) -> str:  # pragma: no cover - admin/debug helper
        return f"{self.occurred_at:%Y-%m-%d %H:%M:%S} [{self.chain_id}] {self.event_type}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("Audit entries are immutable; updates are not allowed.")
        if not self.entry_hash:
            raise ValidationError("entry_hash is required. Use audit.services.append_audit_entry().")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # pragma: no cover - enforced behavior
        raise ValidationError("Audit entries are immutable; deletes are not allowed.")
