import random
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase

from marketplace.models import Category, CollectionAccess, PayoutProfile, Product
from revenue.beneficiary import StandaloneWallet, UserBeneficiary
from revenue.models import IndividualShare
from revenue.services import share_registry
from revenue.services.attribution import register_item_creator
from revenue.services.splits import (
    AttributionTerm,
    ConfigSnapshot,
    SaleContext,
    ShareTerm,
    calculate_splits,
    compute_splits,
    currency_precision,
    load_snapshot,
    parse_sale_total,
)
from revenue.services.wallets import WalletResolution
from revenue.tests.helpers import WALLET_A, WALLET_B, WALLET_C, WALLET_D, grant, make_collection, make_user, owner_ctx

OWNER_ID = 1


def fake_resolver(beneficiary):
    if isinstance(beneficiary, StandaloneWallet):
        return WalletResolution(address=beneficiary.address)
    if beneficiary.user_id == 404:
        return WalletResolution(address=None, unresolved=True)
    return WalletResolution(address=f"wallet-{beneficiary.user_id}")


def sale(total, currency="USD", **kwargs):
    return SaleContext(collection_id=1, total_amount=Decimal(total), currency=currency, **kwargs)


def user_share(user_id, pct, access_type="edit", share_id=None):
    return ShareTerm(
        share_id=share_id or user_id,
        beneficiary=UserBeneficiary(user_id),
        recipient_label=f"user-{user_id}",
        access_type=access_type,
        share_type=IndividualShare.ShareType.PERCENTAGE,
        percentage=Decimal(pct),
    )


def summary(entries):
    return [
        (getattr(e.beneficiary, "user_id", None) or e.beneficiary.address, e.amount, e.share_type)
        for e in entries
    ]


class CalculateSplitsTests(SimpleTestCase):
    def calc(self, sale_ctx, **snapshot_kwargs):
        snapshot_kwargs.setdefault("has_config", True)
        snapshot = ConfigSnapshot(owner_id=OWNER_ID, owner_label="owner", **snapshot_kwargs)
        entries = calculate_splits(sale_ctx, snapshot, resolve_wallet=fake_resolver)
        self.assertEqual(sum((e.amount for e in entries), Decimal("0")), sale_ctx.total_amount)
        return entries

    def test_item_attribution_then_owner_remainder(self):
        entries = self.calc(
            sale("100"),
            attribution=AttributionTerm(
                item_id=7, item_type="product", creator_id=2, creator_label="x", percentage=Decimal("30")
            ),
        )

        self.assertEqual(
            summary(entries),
            [(2, Decimal("30"), "collaborator_item"), (OWNER_ID, Decimal("70"), "owner")],
        )
        self.assertEqual(entries[0].item_id, 7)
        self.assertEqual(entries[0].calculation_method, "item_attribution")
        self.assertEqual(entries[1].percentage, Decimal("70.00"))

    def test_individual_shares_split_remaining(self):
        entries = self.calc(
            sale("50"),
            enable_individual_splits=True,
            shares=(user_share(10, "60"), user_share(11, "40")),
        )
        self.assertEqual(summary(entries), [(10, Decimal("30"), "edit"), (11, Decimal("20"), "edit")])

    def test_standalone_wallet_with_owner_remainder(self):
        wallet = ShareTerm(
            share_id=3,
            beneficiary=StandaloneWallet(address=WALLET_C, label="Charity"),
            recipient_label="Charity",
            access_type="standalone",
            share_type="percentage",
            percentage=Decimal("10"),
        )
        entries = self.calc(sale("200"), enable_individual_splits=True, shares=(wallet,))

        self.assertEqual(
            summary(entries),
            [(WALLET_C, Decimal("20"), "standalone_wallet"), (OWNER_ID, Decimal("180"), "owner")],
        )
        self.assertEqual(entries[0].wallet_address, WALLET_C)
        self.assertIsNone(entries[0].to_dict()["beneficiary_id"])

    def test_shares_ignored_when_individual_splits_disabled(self):
        entries = self.calc(sale("10"), shares=(user_share(10, "50"),))
        self.assertEqual(summary(entries), [(OWNER_ID, Decimal("10"), "owner")])
        self.assertEqual(entries[0].calculation_method, "remainder")

    def test_no_configuration_is_single_owner_tuple(self):
        entries = self.calc(sale("99.99"), has_config=False)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].calculation_method, "no_config")
        self.assertEqual(entries[0].percentage, Decimal("100.00"))

    def test_item_creator_is_not_paid_twice(self):
        entries = self.calc(
            sale("100"),
            enable_individual_splits=True,
            attribution=AttributionTerm(
                item_id=7, item_type="product", creator_id=2, creator_label="x", percentage=Decimal("30")
            ),
            shares=(
                user_share(2, "20"),
                user_share(3, "10", access_type="collaborator"),
                user_share(4, "50", access_type="view"),
            ),
        )

        self.assertEqual(
            summary(entries),
            [
                (2, Decimal("30"), "collaborator_item"),
                (4, Decimal("35"), "view"),
                (OWNER_ID, Decimal("35"), "owner"),
            ],
        )

    def test_owner_share_absorbs_remainder(self):
        entries = self.calc(
            sale("100"),
            enable_individual_splits=True,
            shares=(user_share(OWNER_ID, "20", access_type="owner"), user_share(5, "30")),
        )
        self.assertEqual(summary(entries), [(OWNER_ID, Decimal("70"), "owner"), (5, Decimal("30"), "edit")])
        self.assertEqual(entries[0].calculation_method, "individual_share")

    def test_fixed_amount_is_capped_by_remaining(self):
        fixed = ShareTerm(
            share_id=9,
            beneficiary=UserBeneficiary(9),
            recipient_label="flat",
            access_type="edit",
            share_type=IndividualShare.ShareType.FIXED_AMOUNT,
            percentage=Decimal("0"),
            fixed_amount=Decimal("15"),
        )
        entries = self.calc(sale("10"), enable_individual_splits=True, shares=(fixed,))

        self.assertEqual(summary(entries), [(9, Decimal("10"), "edit")])
        self.assertEqual(entries[0].calculation_method, "fixed_amount")
        self.assertEqual(entries[0].percentage, Decimal("100.00"))

    def test_fixed_amount_paid_before_percentages(self):
        fixed = ShareTerm(
            share_id=9,
            beneficiary=UserBeneficiary(9),
            recipient_label="flat",
            access_type="edit",
            share_type=IndividualShare.ShareType.FIXED_AMOUNT,
            percentage=Decimal("0"),
            fixed_amount=Decimal("20"),
        )
        entries = self.calc(
            sale("100"), enable_individual_splits=True, shares=(user_share(5, "50"), fixed)
        )
        self.assertEqual(
            summary(entries),
            [(9, Decimal("20"), "edit"), (5, Decimal("40"), "edit"), (OWNER_ID, Decimal("40"), "owner")],
        )

    def test_rounding_remainder_goes_to_owner(self):
        entries = self.calc(
            sale("0.10"),
            enable_individual_splits=True,
            shares=(user_share(10, "33.33"), user_share(11, "33.33"), user_share(12, "33.33")),
        )
        self.assertEqual([e.amount for e in entries], [Decimal("0.03")] * 3 + [Decimal("0.01")])

    def test_rounding_overshoot_is_taken_from_largest(self):
        entries = self.calc(
            sale("0.01"),
            enable_individual_splits=True,
            shares=(user_share(10, "50"), user_share(11, "50")),
        )
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].amount, Decimal("0.01"))

    def test_zero_total_emits_owner_tuple(self):
        entries = self.calc(sale("0"), enable_individual_splits=True, shares=(user_share(10, "50"),))
        self.assertEqual(summary(entries), [(OWNER_ID, Decimal("0"), "owner")])

    def test_unresolved_wallet_is_annotated_not_raised(self):
        entries = self.calc(sale("10"), enable_individual_splits=True, shares=(user_share(404, "50"),))

        unresolved = entries[0].to_dict()
        self.assertTrue(unresolved["unresolved_wallet"])
        self.assertIsNone(unresolved["wallet_address"])
        self.assertEqual(unresolved["beneficiary_id"], 404)
        self.assertEqual(unresolved["amount"], "5.00")

    def test_split_entry_durable_shape(self):
        entries = self.calc(
            sale("1", currency="SOL"),
            attribution=AttributionTerm(
                item_id=3, item_type="category", creator_id=2, creator_label="x", percentage=Decimal("12.5")
            ),
        )
        data = entries[0].to_dict()
        self.assertEqual(
            set(data),
            {
                "beneficiary_id",
                "wallet_address",
                "recipient_label",
                "amount",
                "percentage",
                "share_type",
                "calculation_method",
                "unresolved_wallet",
                "item_id",
                "item_type",
            },
        )
        self.assertEqual(data["amount"], "0.125000000")
        self.assertNotIn("item_id", entries[1].to_dict())

    def test_sum_equals_total_for_random_configurations(self):
        rng = random.Random(1337)
        for _ in range(300):
            currency = rng.choice(["USD", "SOL", "USDC", "XYZ"])
            unit = Decimal(1).scaleb(-currency_precision(currency))
            total = Decimal(rng.randint(0, 10**8)) * unit

            left_bps = 10000
            shares = []
            for user_id in range(10, 10 + rng.randint(0, 6)):
                if left_bps <= 0:
                    break
                cents = rng.randint(1, left_bps)
                left_bps -= cents
                shares.append(
                    user_share(user_id, Decimal(cents) / 100, access_type=rng.choice(["edit", "view", "collaborator"]))
                )
            if rng.random() < 0.3:
                shares.append(
                    ShareTerm(
                        share_id=99,
                        beneficiary=UserBeneficiary(99),
                        recipient_label="fixed",
                        access_type="edit",
                        share_type=IndividualShare.ShareType.FIXED_AMOUNT,
                        percentage=Decimal("0"),
                        fixed_amount=Decimal(rng.randint(1, 10**6)) / 1000,
                    )
                )

            attribution = None
            if rng.random() < 0.5:
                attribution = AttributionTerm(
                    item_id=1,
                    item_type="product",
                    creator_id=rng.choice([10, 50]),
                    creator_label="",
                    percentage=Decimal(rng.randint(0, 10000)) / 100,
                )

            entries = self.calc(
                sale(total, currency=currency),
                enable_individual_splits=rng.random() < 0.8,
                shares=tuple(shares),
                attribution=attribution,
            )
            self.assertEqual(sum((e.amount for e in entries), Decimal("0")), total)
            for entry in entries:
                self.assertEqual(entry.amount, entry.amount.quantize(unit))
            self.assertTrue(all(e.amount >= 0 for e in entries))
            paid = [getattr(e.beneficiary, "user_id", None) for e in entries]
            self.assertEqual(len(paid), len(set(paid)))

    def test_sale_total_must_fit_currency_unit(self):
        self.assertEqual(parse_sale_total("10.050", "USD"), Decimal("10.05"))
        self.assertEqual(str(parse_sale_total("10", "SOL")), "10.000000000")
        for value, currency in (("10.005", "USD"), ("0.0000000001", "SOL"), ("1.1234567", "USDC")):
            with self.subTest(value=value, currency=currency):
                with self.assertRaises(ValidationError):
                    parse_sale_total(value, currency)

    def test_currency_precision(self):
        self.assertEqual(currency_precision("sol"), 9)
        self.assertEqual(currency_precision("USD"), 2)
        self.assertEqual(currency_precision("XYZ"), 2)


class ComputeSplitsTests(TestCase):
    def setUp(self):
        self.owner = make_user("owner", wallet=WALLET_A, display_name="Gallery Owner")
        self.artist = make_user("artist", wallet=WALLET_B)
        self.collaborator = make_user("collab", wallet=WALLET_C)
        self.collection = make_collection(self.owner)
        grant(self.collection, self.artist, CollectionAccess.ACCESS_EDIT)
        grant(self.collection, self.collaborator, CollectionAccess.ACCESS_COLLABORATOR)
        self.ctx = owner_ctx(self.collection)

    def _sale(self, total, product=None):
        return SaleContext(
            collection_id=self.collection.id,
            total_amount=Decimal(total),
            currency="SOL",
            product_id=product.id if product else None,
        )

    def test_collaborator_item_sale(self):
        share_registry.upsert_config(
            self.ctx,
            self.collection.id,
            {"owner_share_percentage": "70", "collaborator_share_percentage": "30"},
        )
        product = Product.objects.create(collection=self.collection, name="Print", created_by=self.collaborator)

        entries = compute_splits(self._sale("100", product))

        self.assertEqual(
            [(e.beneficiary, e.amount, e.share_type) for e in entries],
            [
                (UserBeneficiary(self.collaborator.id), Decimal("30"), "collaborator_item"),
                (UserBeneficiary(self.owner.id), Decimal("70"), "owner"),
            ],
        )
        self.assertEqual(entries[0].wallet_address, WALLET_C)
        self.assertEqual(entries[1].recipient_label, "Gallery Owner")

    def test_category_attribution_applies_to_its_products(self):
        share_registry.upsert_config(self.ctx, self.collection.id, {"collaborator_share_percentage": "0"})
        category = Category.objects.create(collection=self.collection, name="Zines", created_by=self.collaborator)
        share_registry.set_individual_share(
            self.ctx, self.collection.id, UserBeneficiary(self.collaborator.id), percentage="25"
        )
        register_item_creator(
            self.ctx,
            collection_id=self.collection.id,
            item_id=category.id,
            item_type="category",
            creator_id=self.collaborator.id,
        )
        product = Product.objects.create(collection=self.collection, category=category, name="Zine #1")

        snapshot = load_snapshot(self.collection.id, product_id=product.id)
        self.assertEqual(snapshot.attribution.item_type, "category")
        self.assertEqual(snapshot.attribution.percentage, Decimal("25.00"))

    def test_payout_wallet_change_is_picked_up_without_share_update(self):
        share_registry.upsert_config(self.ctx, self.collection.id, {"enable_individual_splits": True})
        share = share_registry.set_individual_share(
            self.ctx, self.collection.id, UserBeneficiary(self.artist.id), percentage="40"
        )

        first = compute_splits(self._sale("10"))
        self.assertEqual(first[0].wallet_address, WALLET_B)

        PayoutProfile.objects.filter(user=self.artist).update(payout_wallet=WALLET_D)
        second = compute_splits(self._sale("10"))

        self.assertEqual(second[0].wallet_address, WALLET_D)
        share.refresh_from_db()
        self.assertEqual(share.cached_wallet_address, WALLET_B)

    def test_no_configuration_pays_owner(self):
        entries = compute_splits(self._sale("3.5"))
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].beneficiary, UserBeneficiary(self.owner.id))
        self.assertEqual(entries[0].amount, Decimal("3.5"))
        self.assertEqual(entries[0].wallet_address, WALLET_A)
