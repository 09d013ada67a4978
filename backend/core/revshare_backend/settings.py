import json
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1", "testserver"]),
    CORS_ALLOWED_ORIGINS=(list, []),
    CSRF_TRUSTED_ORIGINS=(list, []),
)
environ.Env.read_env(BASE_DIR / ".env")


def read_secret_from_manager(secret_resource: str, default_value: str = "") -> str:
    """
    Reads a secret value from GCP Secret Manager.

    Expected format:
    projects/<project-id>/secrets/<secret-name>
    or
    projects/<project-id>/secrets/<secret-name>/versions/<version>
    """

    if not secret_resource:
        return default_value

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        full_secret_name = secret_resource
        if "/versions/" not in full_secret_name:
            full_secret_name = f"{full_secret_name}/versions/latest"

        response = client.access_secret_version(request={"name": full_secret_name})
        return response.payload.data.decode("utf-8")
    except Exception:
        return default_value


SECRET_KEY = env("SECRET_KEY", default="")
if not SECRET_KEY:
    SECRET_KEY = read_secret_from_manager(
        env("DJANGO_SECRET_KEY_SECRET", default=""),
        default_value="django-insecure-change-me",
    )

DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

USE_X_FORWARDED_HOST = env.bool("USE_X_FORWARDED_HOST", default=True)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework.authtoken",
    "marketplace.apps.MarketplaceConfig",
    "revenue.apps.RevenueConfig",
    "audit.apps.AuditConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "revshare_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "revshare_backend.wsgi.application"
ASGI_APPLICATION = "revshare_backend.asgi.application"

DATABASE_ENGINE = env("DATABASE_ENGINE", default="django.db.backends.sqlite3").strip()

database_password = env("DATABASE_PASSWORD", default="")
if not database_password:
    database_password = read_secret_from_manager(
        env("DATABASE_PASSWORD_SECRET", default=""),
        default_value="",
    )

cloud_sql_instance = env("CLOUD_SQL_INSTANCE", default="")
database_host = (
    f"/cloudsql/{cloud_sql_instance}"
    if cloud_sql_instance
    else env("DATABASE_HOST", default="127.0.0.1")
)
database_port = "" if cloud_sql_instance else env("DATABASE_PORT", default="5432")

if DATABASE_ENGINE == "django.db.backends.sqlite3":
    DATABASES = {
        "default": {
            "ENGINE": DATABASE_ENGINE,
            "NAME": env("SQLITE_NAME", default=str(BASE_DIR / "db.sqlite3")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DATABASE_ENGINE,
            "NAME": env("DATABASE_NAME", default="revshare_db"),
            "USER": env("DATABASE_USER", default="revshare_user"),
            "PASSWORD": database_password,
            "HOST": database_host,
            "PORT": database_port,
            "CONN_MAX_AGE": env.int("DATABASE_CONN_MAX_AGE", default=60),
            # Sale confirmation and split calculation share one transaction.
            "ATOMIC_REQUESTS": env.bool("DATABASE_ATOMIC_REQUESTS", default=True),
            "OPTIONS": (
                {}
                if cloud_sql_instance
                else {"sslmode": env("DATABASE_SSLMODE", default="disable")}
            ),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = env("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CORS_ALLOWED_ORIGINS = env("CORS_ALLOWED_ORIGINS")
CSRF_TRUSTED_ORIGINS = env("CSRF_TRUSTED_ORIGINS")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
}

LOG_LEVEL = env("LOG_LEVEL", default="INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "mask_wallets": {"()": "revenue.logging.MaskWalletAddressFilter"},
    },
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
            "filters": ["mask_wallets"],
        },
    },
    "loggers": {
        "revenue": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "marketplace": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "audit": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}

REVENUE_DEFAULT_CURRENCY = env("REVENUE_DEFAULT_CURRENCY", default="SOL").strip().upper()

raw_currency_precision = env("REVENUE_CURRENCY_PRECISION", default="")
try:
    REVENUE_CURRENCY_PRECISION = (
        json.loads(raw_currency_precision)
        if raw_currency_precision
        else {"SOL": 9, "USDC": 6, "USD": 2, "BRL": 2, "EUR": 2}
    )
except json.JSONDecodeError:
    REVENUE_CURRENCY_PRECISION = {"SOL": 9, "USDC": 6, "USD": 2, "BRL": 2, "EUR": 2}

REVENUE_DEFAULT_PRECISION = env.int("REVENUE_DEFAULT_PRECISION", default=2)
REVENUE_WALLET_ADDRESS_PATTERN = env(
    "REVENUE_WALLET_ADDRESS_PATTERN",
    default=r"^[1-9A-HJ-NP-Za-km-z]{32,44}$",
)
REVENUE_PAYOUT_WALLET_RESOLVER = env(
    "REVENUE_PAYOUT_WALLET_RESOLVER",
    default="marketplace.wallets.payout_wallet_for_user",
).strip()
REVENUE_EVENT_HISTORY_MAX_LIMIT = env.int("REVENUE_EVENT_HISTORY_MAX_LIMIT", default=500)
