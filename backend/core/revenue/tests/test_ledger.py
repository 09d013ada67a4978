from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from audit.models import AuditEntry
from marketplace.models import CollectionAccess, Product
from revenue.authz import AuthorizationContext, RevenuePermissionDenied
from revenue.beneficiary import UserBeneficiary
from revenue.models import RevenueEvent
from revenue.services import ledger, share_registry
from revenue.services.splits import SplitInvariantError
from revenue.tests.helpers import WALLET_A, WALLET_C, grant, make_collection, make_user, owner_ctx

TX_HASH = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


class RecordRevenueEventTests(TestCase):
    def setUp(self):
        self.owner = make_user("owner", wallet=WALLET_A)
        self.collaborator = make_user("collab", wallet=WALLET_C)
        self.buyer = make_user("buyer")
        self.collection = make_collection(self.owner)
        grant(self.collection, self.collaborator, CollectionAccess.ACCESS_COLLABORATOR)
        self.ctx = owner_ctx(self.collection)
        share_registry.upsert_config(
            self.ctx,
            self.collection.id,
            {"owner_share_percentage": "70", "collaborator_share_percentage": "30"},
        )
        self.product = Product.objects.create(
            collection=self.collection, name="Print", created_by=self.collaborator
        )

    def _record(self, total="100", **kwargs):
        kwargs.setdefault("product_id", self.product.id)
        return ledger.record_item_revenue_event(
            self.collection.id,
            total_amount=total,
            currency="SOL",
            sale_actor_id=self.buyer.id,
            order_id="ord-1",
            **kwargs,
        )

    def test_records_pending_event_with_frozen_splits(self):
        event = RevenueEvent.objects.get(id=self._record())

        self.assertEqual(event.status, RevenueEvent.Status.PENDING)
        self.assertIsNone(event.processed_at)
        self.assertEqual(event.total_amount, Decimal("100"))
        self.assertEqual(event.currency, "SOL")
        self.assertEqual(event.product_id, self.product.id)
        self.assertEqual(event.primary_contributor_id, self.buyer.id)
        self.assertEqual(event.item_creator_id, self.collaborator.id)
        self.assertEqual(
            [(s["beneficiary_id"], s["amount"], s["share_type"]) for s in event.revenue_splits],
            [
                (self.collaborator.id, "30.000000000", "collaborator_item"),
                (self.owner.id, "70.000000000", "owner"),
            ],
        )
        self.assertEqual(event.revenue_splits[0]["item_type"], "product")
        self.assertEqual(
            sum(Decimal(s["amount"]) for s in event.revenue_splits),
            event.total_amount,
        )

    def test_settlement_hash_records_processed_event(self):
        event = RevenueEvent.objects.get(
            id=self._record(settlement_meta={"transaction_hash": TX_HASH, "block_number": "123"})
        )

        self.assertEqual(event.status, RevenueEvent.Status.PROCESSED)
        self.assertIsNotNone(event.processed_at)
        self.assertEqual(event.block_number, 123)

    def test_splits_survive_configuration_changes(self):
        event_id = self._record()
        share_registry.upsert_config(
            self.ctx,
            self.collection.id,
            {"owner_share_percentage": "90", "collaborator_share_percentage": "10"},
        )

        event = RevenueEvent.objects.get(id=event_id)
        self.assertEqual(event.revenue_splits[0]["amount"], "30.000000000")

    def test_missing_payout_wallet_does_not_fail_the_sale(self):
        share_registry.upsert_config(self.ctx, self.collection.id, {"enable_individual_splits": True})
        editor = make_user("editor")
        grant(self.collection, editor, CollectionAccess.ACCESS_EDIT)
        share_registry.set_individual_share(
            self.ctx, self.collection.id, UserBeneficiary(editor.id), percentage="10"
        )

        event = RevenueEvent.objects.get(id=self._record(product_id=None))
        editor_split = next(s for s in event.revenue_splits if s["beneficiary_id"] == editor.id)
        self.assertTrue(editor_split["unresolved_wallet"])
        self.assertIsNone(editor_split["wallet_address"])

    @override_settings(REVENUE_PAYOUT_WALLET_RESOLVER="revenue.tests.resolvers.unavailable_wallet_resolver")
    def test_failing_wallet_backend_does_not_fail_the_sale(self):
        with self.assertLogs("revenue.services.wallets", level="ERROR") as logs:
            event_id = self._record()

        event = RevenueEvent.objects.get(id=event_id)
        self.assertEqual(len(event.revenue_splits), 2)
        for split in event.revenue_splits:
            self.assertTrue(split["unresolved_wallet"])
            self.assertIsNone(split["wallet_address"])
        self.assertIn("reason=resolver_error", logs.output[0])

    def test_total_finer_than_currency_unit_is_rejected(self):
        with self.assertRaises(ValidationError):
            ledger.record_item_revenue_event(
                self.collection.id,
                total_amount="10.005",
                currency="USD",
                product_id=self.product.id,
            )
        self.assertFalse(RevenueEvent.objects.exists())

        event = RevenueEvent.objects.get(
            id=ledger.record_item_revenue_event(
                self.collection.id,
                total_amount="10.050",
                currency="USD",
                product_id=self.product.id,
            )
        )
        self.assertEqual(
            [s["amount"] for s in event.revenue_splits],
            ["3.02", "7.03"],
        )

    def test_calculation_defect_falls_back_to_owner(self):
        with patch(
            "revenue.services.ledger.calculate_splits",
            side_effect=SplitInvariantError("boom"),
        ):
            with self.assertLogs("revenue.services.ledger", level="ERROR") as logs:
                event_id = self._record()

        event = RevenueEvent.objects.get(id=event_id)
        self.assertEqual(len(event.revenue_splits), 1)
        self.assertEqual(event.revenue_splits[0]["beneficiary_id"], self.owner.id)
        self.assertEqual(event.revenue_splits[0]["calculation_method"], "fallback")
        self.assertEqual(event.revenue_splits[0]["amount"], "100.000000000")
        self.assertIn("revenue.splits.fallback", logs.output[0])

    def test_invalid_input_is_rejected(self):
        for total in ("-1", "abc", None):
            with self.subTest(total=total):
                with self.assertRaises(ValidationError):
                    self._record(total=total)
        with self.assertRaises(ValidationError):
            self._record(settlement_meta={"unexpected": "x"})
        self.assertFalse(RevenueEvent.objects.exists())

    def test_record_revenue_event_requires_balanced_splits(self):
        with self.assertRaises(ValidationError):
            ledger.record_revenue_event(
                collection_id=self.collection.id,
                total_amount="10",
                currency="SOL",
                splits=[{"beneficiary_id": self.owner.id, "amount": "9"}],
            )

    def test_events_are_immutable(self):
        event = RevenueEvent.objects.get(id=self._record())

        event.total_amount = Decimal("1")
        with self.assertRaises(ValidationError):
            event.save()
        with self.assertRaises(ValidationError):
            event.save(update_fields=["revenue_splits"])
        with self.assertRaises(ValidationError):
            event.delete()


class RevenueEventStateMachineTests(TestCase):
    def setUp(self):
        self.owner = make_user("owner", wallet=WALLET_A)
        self.collection = make_collection(self.owner)
        self.ctx = owner_ctx(self.collection)
        self.event_id = ledger.record_item_revenue_event(
            self.collection.id, total_amount="5", currency="SOL"
        )

    def _status(self):
        return RevenueEvent.objects.values_list("status", flat=True).get(id=self.event_id)

    def test_pending_to_processed_to_disputed(self):
        event = ledger.mark_processed(self.ctx, self.event_id, transaction_hash=TX_HASH, block_number=42)
        self.assertEqual(event.status, RevenueEvent.Status.PROCESSED)
        self.assertEqual(event.transaction_hash, TX_HASH)
        self.assertIsNotNone(event.processed_at)

        ledger.mark_disputed(self.ctx, self.event_id, "buyer chargeback")
        event.refresh_from_db()
        self.assertEqual(event.status, RevenueEvent.Status.DISPUTED)
        self.assertEqual(event.status_reason, "buyer chargeback")

        for transition in (
            lambda: ledger.retry_event(self.ctx, self.event_id),
            lambda: ledger.mark_failed(self.ctx, self.event_id, "late"),
            lambda: ledger.mark_processed(self.ctx, self.event_id, transaction_hash=TX_HASH),
        ):
            with self.assertRaises(ledger.InvalidStateTransition):
                transition()
        self.assertEqual(self._status(), RevenueEvent.Status.DISPUTED)

    def test_failed_event_can_be_retried(self):
        ledger.mark_failed(self.ctx, self.event_id, "rpc timeout")
        self.assertEqual(self._status(), RevenueEvent.Status.FAILED)

        ledger.retry_event(self.ctx, self.event_id)
        self.assertEqual(self._status(), RevenueEvent.Status.PENDING)

    def test_pending_cannot_be_disputed(self):
        with self.assertRaises(ledger.InvalidStateTransition):
            ledger.mark_disputed(self.ctx, self.event_id, "too early")

    def test_invalid_transition_is_a_validation_error(self):
        ledger.mark_failed(self.ctx, self.event_id, "x")
        with self.assertRaises(ValidationError):
            ledger.mark_failed(self.ctx, self.event_id, "again")

    def test_mark_processed_requires_hash(self):
        with self.assertRaises(ValidationError):
            ledger.mark_processed(self.ctx, self.event_id, transaction_hash="  ")
        self.assertEqual(self._status(), RevenueEvent.Status.PENDING)

    def test_transitions_require_manage_rights(self):
        stranger = make_user("stranger")
        with self.assertRaises(RevenuePermissionDenied):
            ledger.mark_failed(AuthorizationContext(actor_id=stranger.id), self.event_id, "nope")
        self.assertEqual(self._status(), RevenueEvent.Status.PENDING)

    def test_transitions_are_audited(self):
        ledger.mark_failed(self.ctx, self.event_id, "rpc timeout")
        ledger.retry_event(self.ctx, self.event_id)

        entries = AuditEntry.objects.filter(resource_pk=str(self.event_id)).order_by("id")
        self.assertEqual(
            [entry.event_type for entry in entries],
            ["revenue.event.failed", "revenue.event.pending"],
        )
        self.assertEqual(entries[0].data_before["status"], "pending")

    def test_transition_table(self):
        self.assertTrue(RevenueEvent.can_transition_status("pending", "processed"))
        self.assertTrue(RevenueEvent.can_transition_status("failed", "pending"))
        self.assertFalse(RevenueEvent.can_transition_status("processed", "pending"))
        self.assertFalse(RevenueEvent.can_transition_status("disputed", "processed"))


class RevenueEventHistoryTests(TestCase):
    def setUp(self):
        self.owner = make_user("owner", wallet=WALLET_A)
        self.collection = make_collection(self.owner)
        self.ctx = owner_ctx(self.collection)
        self.product = Product.objects.create(collection=self.collection, name="Mug")
        self.ids = [
            ledger.record_item_revenue_event(self.collection.id, total_amount="1", currency="SOL"),
            ledger.record_item_revenue_event(
                self.collection.id, total_amount="2", currency="SOL", product_id=self.product.id
            ),
            ledger.record_item_revenue_event(self.collection.id, total_amount="3", currency="SOL"),
        ]
        RevenueEvent.objects.filter(id=self.ids[0]).update(sale_date=timezone.now() - timedelta(days=10))
        ledger.mark_failed(self.ctx, self.ids[2], "x")

    def test_filters(self):
        self.assertEqual(len(ledger.list_revenue_events(self.collection.id)), 3)
        self.assertEqual(
            [e.id for e in ledger.list_revenue_events(self.collection.id, status="failed")],
            [self.ids[2]],
        )
        self.assertEqual(
            [e.id for e in ledger.list_revenue_events(self.collection.id, product_id=self.product.id)],
            [self.ids[1]],
        )
        recent = ledger.list_revenue_events(self.collection.id, since=timezone.now() - timedelta(days=1))
        self.assertEqual({e.id for e in recent}, {self.ids[1], self.ids[2]})
        old = ledger.list_revenue_events(self.collection.id, until=timezone.now() - timedelta(days=1))
        self.assertEqual([e.id for e in old], [self.ids[0]])
        self.assertEqual(len(ledger.list_revenue_events(self.collection.id, limit=1)), 1)

    def test_unknown_status_filter(self):
        with self.assertRaises(ValidationError):
            ledger.list_revenue_events(self.collection.id, status="lost")
