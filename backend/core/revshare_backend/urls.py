"""
URL configuration for revshare_backend project.

Admin tooling for revenue sharing lives under `api/revenue/`; the per-collection
audit trail under `api/audit/`.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path
from rest_framework.authtoken.views import obtain_auth_token


def healthz(_request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz/", healthz, name="healthz"),
    path("api/auth/token/", obtain_auth_token, name="api-token-auth"),
    path("api/revenue/", include("revenue.api.urls")),
    path("api/audit/", include("audit.urls")),
]
