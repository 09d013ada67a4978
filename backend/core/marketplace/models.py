from django.conf import settings
from django.db import models


class Collection(models.Model):
    """A seller storefront; aggregate root for revenue configuration."""

    name = models.CharField(max_length=150)
    slug = models.SlugField(max_length=80, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_collections",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")
        verbose_name = "Collection"
        verbose_name_plural = "Collections"

    def __str__(self):
        return f"{self.name} ({self.slug})"


class CollectionAccess(models.Model):
    """Grants a non-owner user a tier on a collection.

    The owner is never stored here; ownership is `Collection.owner`.
    """

    ACCESS_VIEW = "view"
    ACCESS_EDIT = "edit"
    ACCESS_COLLABORATOR = "collaborator"
    ACCESS_CHOICES = [
        (ACCESS_VIEW, "View"),
        (ACCESS_EDIT, "Edit"),
        (ACCESS_COLLABORATOR, "Collaborator"),
    ]

    collection = models.ForeignKey(
        Collection,
        on_delete=models.CASCADE,
        related_name="access_grants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="collection_access",
    )
    access_type = models.CharField(max_length=20, choices=ACCESS_CHOICES, default=ACCESS_VIEW)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("collection__name", "user__username")
        constraints = [
            models.UniqueConstraint(
                fields=("collection", "user"),
                name="uq_collection_access_collection_user",
            ),
        ]
        verbose_name = "Collection Access"
        verbose_name_plural = "Collection Access"

    def __str__(self):
        return f"{self.user} @ {self.collection} ({self.access_type})"


class PayoutProfile(models.Model):
    """Where a user currently wants to be paid. Read live at split time."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payout_profile",
    )
    display_name = models.CharField(max_length=150, blank=True)
    payout_wallet = models.CharField(max_length=128, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Payout Profile"
        verbose_name_plural = "Payout Profiles"

    def __str__(self):
        return self.display_name or str(self.user)


class Category(models.Model):
    collection = models.ForeignKey(
        Collection,
        on_delete=models.CASCADE,
        related_name="categories",
    )
    name = models.CharField(max_length=150)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_categories",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name", "id")
        verbose_name_plural = "Categories"
        indexes = [
            models.Index(fields=("created_by",), name="idx_category_created_by"),
        ]

    def __str__(self):
        return self.name


class Product(models.Model):
    collection = models.ForeignKey(
        Collection,
        on_delete=models.CASCADE,
        related_name="products",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        related_name="products",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=20, decimal_places=9, default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_products",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name", "id")
        indexes = [
            models.Index(fields=("created_by",), name="idx_product_created_by"),
        ]

    def __str__(self):
        return self.name
