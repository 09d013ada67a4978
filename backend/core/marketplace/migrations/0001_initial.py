# Generated manually. Keep in sync with marketplace/models.py.

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Collection",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="owned_collections", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Collection",
                "verbose_name_plural": "Collections",
                "ordering": ("name", "id"),
            },
        ),
        migrations.CreateModel(
            name="PayoutProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(blank=True, max_length=150)),
                ("payout_wallet", models.CharField(blank=True, max_length=128)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="payout_profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Payout Profile",
                "verbose_name_plural": "Payout Profiles",
            },
        ),
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="categories", to="marketplace.collection")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_categories", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name_plural": "Categories",
                "ordering": ("name", "id"),
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("price", models.DecimalField(decimal_places=9, default=0, max_digits=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="products", to="marketplace.category")),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="products", to="marketplace.collection")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_products", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("name", "id"),
            },
        ),
        migrations.CreateModel(
            name="CollectionAccess",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("access_type", models.CharField(choices=[("view", "View"), ("edit", "Edit"), ("collaborator", "Collaborator")], default="view", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_grants", to="marketplace.collection")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="collection_access", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Collection Access",
                "verbose_name_plural": "Collection Access",
                "ordering": ("collection__name", "user__username"),
            },
        ),
        migrations.AddConstraint(
            model_name="collectionaccess",
            constraint=models.UniqueConstraint(fields=("collection", "user"), name="uq_collection_access_collection_user"),
        ),
        migrations.AddIndex(
            model_name="category",
            index=models.Index(fields=["created_by"], name="idx_category_created_by"),
        ),
        migrations.AddIndex(
            model_name="product",
            index=models.Index(fields=["created_by"], name="idx_product_created_by"),
        ),
    ]
