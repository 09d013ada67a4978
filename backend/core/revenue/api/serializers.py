from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from revenue.beneficiary import Beneficiary, StandaloneWallet, UserBeneficiary
from revenue.models import CollectionRevenueConfig, IndividualShare, ItemAttribution, RevenueEvent

_PERCENT = {
    "max_digits": 5,
    "decimal_places": 2,
    "min_value": Decimal("0"),
    "max_value": Decimal("100"),
}


class CollectionRevenueConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = CollectionRevenueConfig
        fields = (
            "id",
            "collection_id",
            "owner_share_percentage",
            "editor_share_percentage",
            "collaborator_share_percentage",
            "viewer_share_percentage",
            "split_model",
            "enable_individual_splits",
            "settlement_contract_address",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class RevenueConfigUpsertSerializer(serializers.Serializer):
    owner_share_percentage = serializers.DecimalField(required=False, **_PERCENT)
    editor_share_percentage = serializers.DecimalField(required=False, **_PERCENT)
    collaborator_share_percentage = serializers.DecimalField(required=False, **_PERCENT)
    viewer_share_percentage = serializers.DecimalField(required=False, **_PERCENT)
    split_model = serializers.ChoiceField(choices=CollectionRevenueConfig.SplitModel.choices, required=False)
    enable_individual_splits = serializers.BooleanField(required=False)
    settlement_contract_address = serializers.CharField(required=False, allow_blank=True, max_length=128)


class IndividualShareSerializer(serializers.ModelSerializer):
    class Meta:
        model = IndividualShare
        fields = (
            "id",
            "collection_id",
            "user_id",
            "wallet_address",
            "recipient_label",
            "access_type",
            "share_type",
            "share_percentage",
            "fixed_amount",
            "cached_wallet_address",
            "is_active",
            "effective_from",
            "effective_until",
            "deactivated_at",
            "created_at",
        )
        read_only_fields = fields


class IndividualShareWriteSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    wallet_address = serializers.CharField(required=False, allow_blank=True, max_length=128)
    recipient_label = serializers.CharField(required=False, allow_blank=True, max_length=150)
    share_type = serializers.ChoiceField(
        choices=IndividualShare.ShareType.choices,
        default=IndividualShare.ShareType.PERCENTAGE,
    )
    share_percentage = serializers.DecimalField(required=False, allow_null=True, **_PERCENT)
    fixed_amount = serializers.DecimalField(
        max_digits=20,
        decimal_places=9,
        required=False,
        allow_null=True,
    )
    effective_from = serializers.DateTimeField(required=False, allow_null=True)
    effective_until = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        has_user = attrs.get("user_id") is not None
        has_wallet = bool((attrs.get("wallet_address") or "").strip())
        if has_user == has_wallet:
            raise serializers.ValidationError("Provide exactly one of user_id or wallet_address.")
        return attrs

    def beneficiary(self) -> Beneficiary:
        data = self.validated_data
        if data.get("user_id") is not None:
            return UserBeneficiary(user_id=data["user_id"])
        return StandaloneWallet(
            address=data["wallet_address"].strip(),
            label=(data.get("recipient_label") or "").strip(),
        )


class ItemAttributionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ItemAttribution
        fields = (
            "id",
            "collection_id",
            "item_id",
            "item_type",
            "creator_id",
            "revenue_share_percentage",
            "is_active",
            "deactivated_at",
            "created_at",
        )
        read_only_fields = fields


class ItemAttributionWriteSerializer(serializers.Serializer):
    item_id = serializers.IntegerField(min_value=1)
    item_type = serializers.ChoiceField(choices=ItemAttribution.ItemType.choices)
    creator_id = serializers.IntegerField(min_value=1)
    override_percentage = serializers.DecimalField(required=False, allow_null=True, **_PERCENT)


class RevenueEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = RevenueEvent
        fields = (
            "id",
            "collection_id",
            "product_id",
            "category_id",
            "order_id",
            "total_amount",
            "currency",
            "primary_contributor_id",
            "item_creator_id",
            "revenue_splits",
            "transaction_hash",
            "settlement_contract_address",
            "block_number",
            "status",
            "status_reason",
            "sale_date",
            "processed_at",
            "created_at",
        )
        read_only_fields = fields


class SplitPreviewSerializer(serializers.Serializer):
    total_amount = serializers.DecimalField(max_digits=20, decimal_places=9, min_value=Decimal("0"))
    currency = serializers.CharField(required=False, allow_blank=True, max_length=12)
    product_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    category_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class EventTransitionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    transaction_hash = serializers.CharField(required=False, allow_blank=True, max_length=128, default="")
    block_number = serializers.IntegerField(required=False, allow_null=True, min_value=0)
