from django.contrib import admin

from revenue.models import CollectionRevenueConfig, IndividualShare, ItemAttribution, RevenueEvent


@admin.register(CollectionRevenueConfig)
class CollectionRevenueConfigAdmin(admin.ModelAdmin):
    list_display = (
        "collection",
        "split_model",
        "enable_individual_splits",
        "owner_share_percentage",
        "collaborator_share_percentage",
        "updated_at",
    )
    list_filter = ("split_model", "enable_individual_splits")
    search_fields = ("collection__name", "collection__slug")


@admin.register(IndividualShare)
class IndividualShareAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "collection",
        "user",
        "recipient_label",
        "access_type",
        "share_type",
        "share_percentage",
        "fixed_amount",
        "is_active",
        "effective_from",
        "effective_until",
    )
    list_filter = ("is_active", "share_type", "access_type")
    search_fields = ("collection__name", "user__username", "recipient_label", "wallet_address")
    readonly_fields = [field.name for field in IndividualShare._meta.fields]

    # Rows are versioned through revenue.services.share_registry only.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ItemAttribution)
class ItemAttributionAdmin(admin.ModelAdmin):
    list_display = ("id", "collection", "item_type", "item_id", "creator", "revenue_share_percentage", "is_active")
    list_filter = ("item_type", "is_active")
    search_fields = ("collection__name", "creator__username")
    readonly_fields = [field.name for field in ItemAttribution._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(RevenueEvent)
class RevenueEventAdmin(admin.ModelAdmin):
    list_display = ("id", "collection", "total_amount", "currency", "status", "sale_date", "transaction_hash")
    list_filter = ("status", "currency")
    search_fields = ("order_id", "transaction_hash", "collection__name")
    ordering = ("-sale_date", "-id")
    readonly_fields = [field.name for field in RevenueEvent._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
