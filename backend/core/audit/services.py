from __future__ import annotations

import hashlib
import json
import logging
from uuid import UUID, uuid4

from django.db import IntegrityError, transaction
from django.utils import timezone

from audit.models import AuditEntry

logger = logging.getLogger(__name__)

PLATFORM_CHAIN = "platform"


def chain_id_for(collection_id: int | None) -> str:
    return f"collection:{collection_id}" if collection_id is not None else PLATFORM_CHAIN


def _canonical_json(value) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


def _request_id(request) -> UUID:
    if request is not None:
        raw = (request.headers.get("X-Request-ID", "") or "").strip()
        if raw:
            try:
                return UUID(raw)
            except ValueError:
                pass
    return uuid4()


def _build_entry_hash(payload: dict, prev_hash: str) -> str:
    material = f"{prev_hash}{_canonical_json(payload)}".encode("utf-8")
    return hashlib.sha256(material).hexdigest()


def _entry_payload(entry: AuditEntry) -> dict:
    # The collection and actor foreign keys are SET_NULL on delete, so they stay
    # out of the hash; chain_id and actor_label carry the same identities.
    return {
        "chain_id": entry.chain_id,
        "actor_label": entry.actor_label,
        "action": entry.action,
        "event_type": entry.event_type,
        "resource_label": entry.resource_label,
        "resource_pk": entry.resource_pk,
        "occurred_at": entry.occurred_at.isoformat(),
        "request_id": str(entry.request_id),
        "data_before": entry.data_before,
        "data_after": entry.data_after,
        "metadata": entry.metadata,
    }


def append_audit_entry(
    *,
    collection_id: int | None,
    actor_id: int | None,
    action: str,
    event_type: str,
    resource_label: str,
    resource_pk: str = "",
    actor_label: str = "",
    request=None,
    data_before: dict | None = None,
    data_after: dict | None = None,
    metadata: dict | None = None,
) -> AuditEntry:
    """Append a new immutable audit entry to the collection's chain.

    Concurrent writers race on `(chain_id, prev_hash)` uniqueness; the loser
    re-reads the chain head and retries.
    """

    chain_id = chain_id_for(collection_id)
    occurred_at = timezone.now()
    request_id = _request_id(request)
    # Round-trip through JSON so the hashed payload matches what the store returns.
    data_before = json.loads(_canonical_json(data_before)) if data_before is not None else None
    data_after = json.loads(_canonical_json(data_after)) if data_after is not None else None
    metadata = json.loads(_canonical_json(metadata)) if isinstance(metadata, dict) else {}

    for _attempt in range(5):
        prev_hash = (
            AuditEntry.objects.filter(chain_id=chain_id)
            .order_by("-id")
            .values_list("entry_hash", flat=True)
            .first()
            or ""
        )
        entry = AuditEntry(
            collection_id=collection_id,
            actor_id=actor_id,
            actor_label=actor_label or ("system" if actor_id is None else f"user:{actor_id}"),
            action=action,
            event_type=event_type,
            resource_label=resource_label,
            resource_pk=resource_pk,
            occurred_at=occurred_at,
            request_id=request_id,
            chain_id=chain_id,
            prev_hash=prev_hash,
            data_before=data_before,
            data_after=data_after,
            metadata=metadata,
        )
        entry.entry_hash = _build_entry_hash(_entry_payload(entry), prev_hash)

        try:
            with transaction.atomic():
                entry.save(force_insert=True)
            return entry
        except IntegrityError as exc:
            if "uq_audit_prev_hash_per_chain" in str(exc) or "prev_hash" in str(exc):
                logger.info("audit.append.retry chain_id=%s attempt=%s", chain_id, _attempt + 1)
                continue
            raise

    raise RuntimeError("Failed to append audit entry (concurrency retries exhausted).")


def verify_chain(chain_id: str) -> bool:
    """Recompute every hash of a chain in insertion order."""

    prev_hash = ""
    for entry in AuditEntry.objects.filter(chain_id=chain_id).order_by("id").iterator():
        if entry.prev_hash != prev_hash:
            return False
        if _build_entry_hash(_entry_payload(entry), prev_hash) != entry.entry_hash:
            return False
        prev_hash = entry.entry_hash
    return True
