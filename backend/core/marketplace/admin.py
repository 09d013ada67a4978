from django.contrib import admin

from marketplace.models import Category, Collection, CollectionAccess, PayoutProfile, Product


@admin.register(Collection)
class CollectionAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "owner", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "slug", "owner__username")
    readonly_fields = ("created_at", "updated_at")


@admin.register(CollectionAccess)
class CollectionAccessAdmin(admin.ModelAdmin):
    list_display = ("collection", "user", "access_type", "created_at")
    list_filter = ("access_type",)
    search_fields = ("collection__name", "user__username", "user__email")


@admin.register(PayoutProfile)
class PayoutProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "display_name", "payout_wallet", "updated_at")
    search_fields = ("user__username", "display_name", "payout_wallet")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "collection", "category", "created_by", "created_at")
    list_filter = ("collection",)
    search_fields = ("name", "collection__name")


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "collection", "created_by", "created_at")
    list_filter = ("collection",)
    search_fields = ("name", "collection__name")
