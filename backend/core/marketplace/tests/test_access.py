from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from marketplace.access import ACCESS_OWNER, authorization_context_for, get_access_type
from marketplace.models import CollectionAccess
from marketplace.wallets import payout_wallet_for_user
from revenue.tests.helpers import WALLET_A, grant, make_collection, make_user


class CollectionAccessTests(TestCase):
    def setUp(self):
        self.owner = make_user("owner")
        self.viewer = make_user("viewer")
        self.stranger = make_user("stranger")
        self.collection = make_collection(self.owner)
        self.other = make_collection(self.stranger, slug="other")
        grant(self.collection, self.viewer, CollectionAccess.ACCESS_VIEW)

    def test_get_access_type(self):
        self.assertEqual(get_access_type(self.collection.id, self.owner.id), ACCESS_OWNER)
        self.assertEqual(get_access_type(self.collection.id, self.viewer.id), CollectionAccess.ACCESS_VIEW)
        self.assertIsNone(get_access_type(self.collection.id, self.stranger.id))
        self.assertIsNone(get_access_type(self.collection.id, None))

    def test_context_lists_owned_collections(self):
        ctx = authorization_context_for(self.owner)
        self.assertEqual(ctx.actor_id, self.owner.id)
        self.assertTrue(ctx.can_manage_collection(self.collection.id))
        self.assertFalse(ctx.can_manage_collection(self.other.id))

    def test_granted_tier_does_not_grant_management(self):
        self.assertFalse(authorization_context_for(self.viewer).can_manage_collection(self.collection.id))

    def test_staff_is_admin(self):
        self.stranger.is_staff = True
        self.stranger.save(update_fields=["is_staff"])
        self.assertTrue(authorization_context_for(self.stranger).can_manage_collection(self.collection.id))

    def test_anonymous_user_manages_nothing(self):
        ctx = authorization_context_for(AnonymousUser())
        self.assertIsNone(ctx.actor_id)
        self.assertFalse(ctx.can_manage_collection(self.collection.id))


class PayoutWalletTests(TestCase):
    def test_reads_live_profile(self):
        user = make_user("artist", wallet=f"  {WALLET_A} ")
        self.assertEqual(payout_wallet_for_user(user.id), WALLET_A)

    def test_missing_profile_or_blank_wallet(self):
        self.assertIsNone(payout_wallet_for_user(make_user("nobody").id))
        self.assertIsNone(payout_wallet_for_user(make_user("blank", wallet="").id))
