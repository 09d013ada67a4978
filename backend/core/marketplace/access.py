from __future__ import annotations

from marketplace.models import Collection, CollectionAccess
from revenue.authz import AuthorizationContext

ACCESS_OWNER = "owner"


def get_access_type(collection_id: int, user_id: int | None) -> str | None:
    """Return the user's tier on a collection: owner, edit, view, collaborator or None."""

    if user_id is None:
        return None

    owner_id = (
        Collection.objects.filter(id=collection_id).values_list("owner_id", flat=True).first()
    )
    if owner_id is not None and owner_id == user_id:
        return ACCESS_OWNER

    return (
        CollectionAccess.objects.filter(collection_id=collection_id, user_id=user_id)
        .values_list("access_type", flat=True)
        .first()
    )


def authorization_context_for(user) -> AuthorizationContext:
    """Build the capability object the revenue engine trusts for this user."""

    if user is None or not getattr(user, "is_authenticated", False):
        return AuthorizationContext(actor_id=None)

    is_admin = bool(user.is_superuser or user.is_staff)
    owned = frozenset(
        Collection.objects.filter(owner=user).values_list("id", flat=True)
    )
    return AuthorizationContext(
        actor_id=user.id,
        is_admin=is_admin,
        managed_collection_ids=owned,
    )
