from django.contrib.auth import get_user_model

from marketplace.models import Collection, CollectionAccess, PayoutProfile
from revenue.authz import AuthorizationContext

WALLET_A = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
WALLET_B = "HN7cABqLq46Es1jh92dQQisAq662SmxELLLsHHe4YWrH"
WALLET_C = "3Kz9vQmT8pRw2xYh6NbEcFgJ4sUaVd7WkH5LtZrM1Xyq"
WALLET_D = "5tWbXq9cR2mKpLzN7vYhD3sEfGj8aT4uBwQx6kHnJeZ"


def make_user(username, *, wallet=None, display_name=""):
    user = get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass-123",
    )
    if wallet is not None:
        PayoutProfile.objects.create(user=user, payout_wallet=wallet, display_name=display_name)
    return user


def make_collection(owner, slug="store"):
    return Collection.objects.create(name=slug.title(), slug=slug, owner=owner)


def grant(collection, user, access_type):
    return CollectionAccess.objects.create(collection=collection, user=user, access_type=access_type)


def owner_ctx(collection):
    return AuthorizationContext(
        actor_id=collection.owner_id,
        managed_collection_ids=frozenset({collection.id}),
    )
