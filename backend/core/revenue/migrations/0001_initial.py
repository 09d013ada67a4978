# Generated manually. Keep in sync with revenue/models/.

from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


def _percent_validators():
    return [
        django.core.validators.MinValueValidator(Decimal("0.00")),
        django.core.validators.MaxValueValidator(Decimal("100.00")),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("marketplace", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CollectionRevenueConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("owner_share_percentage", models.DecimalField(decimal_places=2, default=Decimal("100.00"), max_digits=5, validators=_percent_validators())),
                ("editor_share_percentage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, validators=_percent_validators())),
                ("collaborator_share_percentage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, validators=_percent_validators())),
                ("viewer_share_percentage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, validators=_percent_validators())),
                ("split_model", models.CharField(choices=[("owner_only", "Owner only"), ("equal_split", "Equal split"), ("contribution_based", "Contribution based"), ("custom", "Custom")], default="owner_only", max_length=30)),
                ("enable_individual_splits", models.BooleanField(default=False)),
                ("settlement_contract_address", models.CharField(blank=True, help_text="Optional on-chain settlement/split contract reference.", max_length=128)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("collection", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="revenue_config", to="marketplace.collection")),
            ],
            options={
                "verbose_name": "Collection Revenue Config",
                "verbose_name_plural": "Collection Revenue Configs",
            },
        ),
        migrations.AddConstraint(
            model_name="collectionrevenueconfig",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    owner_share_percentage__gte=0,
                    editor_share_percentage__gte=0,
                    collaborator_share_percentage__gte=0,
                    viewer_share_percentage__gte=0,
                ),
                name="ck_rev_config_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="collectionrevenueconfig",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    owner_share_percentage__lte=Decimal("100.00")
                    - models.F("editor_share_percentage")
                    - models.F("collaborator_share_percentage")
                    - models.F("viewer_share_percentage")
                ),
                name="ck_rev_config_sum_lte_100",
            ),
        ),
        migrations.CreateModel(
            name="IndividualShare",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("wallet_address", models.CharField(blank=True, max_length=128)),
                ("recipient_label", models.CharField(blank=True, max_length=150)),
                ("access_type", models.CharField(choices=[("owner", "Owner"), ("edit", "Edit"), ("view", "View"), ("collaborator", "Collaborator"), ("standalone", "Standalone wallet")], help_text="Beneficiary tier on the collection when the share was written.", max_length=20)),
                ("share_type", models.CharField(choices=[("percentage", "Percentage"), ("fixed_amount", "Fixed amount")], default="percentage", max_length=20)),
                ("share_percentage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, validators=_percent_validators())),
                ("fixed_amount", models.DecimalField(blank=True, decimal_places=9, max_digits=20, null=True)),
                ("cached_wallet_address", models.CharField(blank=True, help_text="Payout wallet seen at write time. Display only; never used for settlement.", max_length=128)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("effective_from", models.DateTimeField(default=django.utils.timezone.now)),
                ("effective_until", models.DateTimeField(blank=True, null=True)),
                ("deactivated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="individual_shares", to="marketplace.collection")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="revenue_shares", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Individual Share",
                "verbose_name_plural": "Individual Shares",
                "ordering": ("collection_id", "-is_active", "-effective_from", "-id"),
            },
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.CheckConstraint(
                condition=(models.Q(user__isnull=False) & models.Q(wallet_address=""))
                | (models.Q(user__isnull=True) & ~models.Q(wallet_address="")),
                name="ck_rev_share_single_beneficiary",
            ),
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.CheckConstraint(
                condition=models.Q(effective_until__isnull=True)
                | models.Q(effective_until__gt=models.F("effective_from")),
                name="ck_rev_share_eff_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.CheckConstraint(
                condition=~models.Q(share_type="fixed_amount") | models.Q(fixed_amount__isnull=False),
                name="ck_rev_share_fixed_amount_present",
            ),
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.CheckConstraint(
                condition=models.Q(share_percentage__gte=0) & models.Q(share_percentage__lte=100),
                name="ck_rev_share_pct_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.UniqueConstraint(
                condition=models.Q(is_active=True, user__isnull=False),
                fields=("collection", "user"),
                name="uq_rev_share_active_user",
            ),
        ),
        migrations.AddConstraint(
            model_name="individualshare",
            constraint=models.UniqueConstraint(
                condition=models.Q(is_active=True, user__isnull=True),
                fields=("collection", "wallet_address"),
                name="uq_rev_share_active_wallet",
            ),
        ),
        migrations.AddIndex(
            model_name="individualshare",
            index=models.Index(fields=["collection", "is_active"], name="idx_rev_share_coll_active"),
        ),
        migrations.AddIndex(
            model_name="individualshare",
            index=models.Index(fields=["user"], name="idx_rev_share_user"),
        ),
        migrations.CreateModel(
            name="ItemAttribution",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_id", models.PositiveBigIntegerField()),
                ("item_type", models.CharField(choices=[("product", "Product"), ("category", "Category")], max_length=20)),
                ("revenue_share_percentage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, validators=_percent_validators())),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("deactivated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="item_attributions", to="marketplace.collection")),
                ("creator", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="item_attributions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Item Attribution",
                "verbose_name_plural": "Item Attributions",
                "ordering": ("-is_active", "-created_at", "-id"),
            },
        ),
        migrations.AddConstraint(
            model_name="itemattribution",
            constraint=models.CheckConstraint(
                condition=models.Q(revenue_share_percentage__gte=0) & models.Q(revenue_share_percentage__lte=100),
                name="ck_item_attr_pct_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="itemattribution",
            constraint=models.UniqueConstraint(
                condition=models.Q(is_active=True),
                fields=("item_type", "item_id"),
                name="uq_item_attr_active_item",
            ),
        ),
        migrations.AddIndex(
            model_name="itemattribution",
            index=models.Index(fields=["item_type", "item_id"], name="idx_item_attr_item"),
        ),
        migrations.AddIndex(
            model_name="itemattribution",
            index=models.Index(fields=["creator"], name="idx_item_attr_creator"),
        ),
        migrations.AddIndex(
            model_name="itemattribution",
            index=models.Index(fields=["collection"], name="idx_item_attr_collection"),
        ),
        migrations.CreateModel(
            name="RevenueEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("total_amount", models.DecimalField(decimal_places=9, max_digits=20, validators=[django.core.validators.MinValueValidator(0)])),
                ("currency", models.CharField(max_length=12)),
                ("revenue_splits", models.JSONField(default=list, encoder=DjangoJSONEncoder)),
                ("transaction_hash", models.CharField(blank=True, max_length=128)),
                ("settlement_contract_address", models.CharField(blank=True, max_length=128)),
                ("block_number", models.BigIntegerField(blank=True, null=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processed", "Processed"), ("failed", "Failed"), ("disputed", "Disputed")], db_index=True, default="pending", max_length=20)),
                ("status_reason", models.TextField(blank=True)),
                ("sale_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="revenue_events", to="marketplace.category")),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="revenue_events", to="marketplace.collection")),
                ("item_creator", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("primary_contributor", models.ForeignKey(blank=True, help_text="The user who made the sale, when known.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("product", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="revenue_events", to="marketplace.product")),
            ],
            options={
                "verbose_name": "Revenue Event",
                "verbose_name_plural": "Revenue Events",
                "ordering": ("-sale_date", "-id"),
            },
        ),
        migrations.AddConstraint(
            model_name="revenueevent",
            constraint=models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="ck_rev_event_total_non_negative",
            ),
        ),
        migrations.AddIndex(
            model_name="revenueevent",
            index=models.Index(fields=["collection", "sale_date"], name="idx_rev_event_coll_date"),
        ),
        migrations.AddIndex(
            model_name="revenueevent",
            index=models.Index(fields=["status"], name="idx_rev_event_status"),
        ),
    ]
