"""Authorization capability passed into the revenue engine.

The engine never looks up the caller's identity on its own. Whoever calls a
mutating operation hands in an `AuthorizationContext` that already states which
collections the caller may manage; the engine only checks it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.core.exceptions import PermissionDenied


class RevenuePermissionDenied(PermissionDenied):
    """Caller lacks ownership/admin rights over the collection. Not retryable."""


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    actor_id: int | None
    is_admin: bool = False
    managed_collection_ids: frozenset[int] = field(default_factory=frozenset)
    is_system: bool = False

    def can_manage_collection(self, collection_id: int) -> bool:
        if self.is_system or self.is_admin:
            return True
        return int(collection_id) in self.managed_collection_ids

    def require_manage(self, collection_id: int) -> None:
        if not self.can_manage_collection(collection_id):
            raise RevenuePermissionDenied(
                f"Only the collection owner or an admin can manage revenue for collection {collection_id}."
            )


SYSTEM_CONTEXT = AuthorizationContext(actor_id=None, is_system=True)
