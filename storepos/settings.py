"""
Django settings for storepos project.
Django 5.x
Production-ready for Render + Local development (Cloudinary + DRF + Jazzmin).
"""

from decimal import Decimal
from pathlib import Path
import os
from corsheaders.defaults import default_headers

# --------------------------------------------------
# Load .env file (safe for local, ignored on Render)
# --------------------------------------------------
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def env_list(name, default=""):
    raw = os.environ.get(name, default)
    return [v.strip() for v in raw.split(",") if v.strip()]


# --------------------------------------------------
# Core settings
# --------------------------------------------------
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "django-insecure-dev-key"
)

DEBUG = os.environ.get("DEBUG", "0") == "1"

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0,testserver")

CSRF_TRUSTED_ORIGINS = env_list(
    "CSRF_TRUSTED_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)

# --------------------------------------------------
# Applications
# --------------------------------------------------
INSTALLED_APPS = [
    "jazzmin",
    "pos",

    # Cloudinary
    "cloudinary",

    # Third party
    "corsheaders",
    "rest_framework",
    "django_extensions",
    "rest_framework.authtoken",

    # Django default
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

# --------------------------------------------------
# DRF settings (Token Auth for the cashier app, session for pages)
# --------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "EXCEPTION_HANDLER": "pos.exceptions.pos_exception_handler",
    "COERCE_DECIMAL_TO_STRING": True,
}

# --------------------------------------------------
# Middleware
# --------------------------------------------------
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",

    # CORS must be placed before CommonMiddleware
    "corsheaders.middleware.CorsMiddleware",

    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "storepos.urls"
WSGI_APPLICATION = "storepos.wsgi.application"
AUTH_USER_MODEL = "pos.CustomUser"

LOGIN_URL = "/admin/login/"

# --------------------------------------------------
# CORS configuration
# --------------------------------------------------
CORS_ALLOW_ALL_ORIGINS = False

CORS_ALLOWED_ORIGINS = env_list(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)

# Allow any Vercel preview subdomain
CORS_ALLOWED_ORIGIN_REGEXES = [
    r"^https:\/\/.*\.vercel\.app$",
]

CORS_ALLOW_METHODS = ["DELETE", "GET", "OPTIONS", "PATCH", "POST", "PUT"]
CORS_ALLOW_HEADERS = list(default_headers) + ["authorization"]
CORS_ALLOW_CREDENTIALS = False

# --------------------------------------------------
# Database
# Auto-switch:
# - Local: SQLite
# - Render: PostgreSQL via DATABASE_URL
# --------------------------------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()

if DATABASE_URL:
    import dj_database_url
    DATABASES = {
        "default": dj_database_url.parse(
            DATABASE_URL,
            conn_max_age=600,
            ssl_require=not DEBUG,
        )
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# --------------------------------------------------
# Templates
# --------------------------------------------------
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
                "pos.context_processors.user_role_context",
            ],
        },
    },
]

# --------------------------------------------------
# Internationalization
# --------------------------------------------------
LANGUAGE_CODE = "id"
TIME_ZONE = os.environ.get("TIME_ZONE", "Asia/Jakarta")
USE_I18N = True
USE_TZ = True

# --------------------------------------------------
# Static files
# --------------------------------------------------
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# --------------------------------------------------
# Media storage (Cloudinary)
# --------------------------------------------------
# Most stable approach: use CLOUDINARY_URL
CLOUDINARY_URL = os.environ.get("CLOUDINARY_URL", "").strip()

# Fallback if CLOUDINARY_URL is not set
CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME", "").strip()
API_KEY = os.environ.get("CLOUDINARY_API_KEY", "").strip()
API_SECRET = os.environ.get("CLOUDINARY_API_SECRET", "").strip()

if not CLOUDINARY_URL and CLOUD_NAME and API_KEY and API_SECRET:
    CLOUDINARY_URL = f"cloudinary://{API_KEY}:{API_SECRET}@{CLOUD_NAME}"
    os.environ["CLOUDINARY_URL"] = CLOUDINARY_URL

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# --------------------------------------------------
# Logging
# --------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "[{asctime}] {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "django.request": {
            "handlers": ["console"],
            "level": "ERROR",
            "propagate": False,
        },
        "pos": {
            "handlers": ["console"],
            "level": "DEBUG" if DEBUG else "INFO",
            "propagate": False,
        },
        "": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}

# --------------------------------------------------
# POS business rules
# --------------------------------------------------
# 1 point = Rp1000 discount; 1 point earned per Rp1000 of final total
POS_POINT_VALUE = Decimal(os.environ.get("POS_POINT_VALUE", "1000"))
POS_POINTS_EARN_UNIT = Decimal(os.environ.get("POS_POINTS_EARN_UNIT", "1000"))
POS_LOW_STOCK_THRESHOLD = int(os.environ.get("POS_LOW_STOCK_THRESHOLD", "5"))
POS_TRANSACTION_LIST_LIMIT = int(os.environ.get("POS_TRANSACTION_LIST_LIMIT", "1000"))

# --------------------------------------------------
# Payment gateway (Midtrans Snap)
# --------------------------------------------------
MIDTRANS_SERVER_KEY = os.environ.get("MIDTRANS_SERVER_KEY", "").strip()
MIDTRANS_IS_PRODUCTION = os.environ.get("MIDTRANS_IS_PRODUCTION", "0") == "1"
MIDTRANS_TIMEOUT = int(os.environ.get("MIDTRANS_TIMEOUT", "15"))

# --------------------------------------------------
# Jazzmin configuration
# --------------------------------------------------
JAZZMIN_SETTINGS = {
    "site_title": "StorePOS Admin",
    "site_header": "StorePOS Admin Panel",
    "welcome_sign": "Selamat Datang di StorePOS",
    "site_brand": "StorePOS",
    "show_sidebar": True,
    "navigation_expanded": True,
    "icons": {
        "pos.Member": "fas fa-id-card",
        "pos.Category": "fas fa-boxes",
        "pos.Product": "fas fa-box-open",
        "pos.Transaction": "fas fa-shopping-cart",
        "pos.Voucher": "fas fa-ticket-alt",
        "pos.Promotion": "fas fa-percent",
        "pos.OperationalExpense": "fas fa-coins",
        "pos.CashierShift": "fas fa-cash-register",
        "pos.Shop": "fas fa-store",
        "pos.CustomUser": "fas fa-user-shield",
        "pos.TokenProxy": "fas fa-key",
    },
    "custom_links": {
        "pos": [
            {"name": "Cashier", "url": "/cashier/", "icon": "fas fa-cash-register", "permissions": ["pos.add_transaction"]},
            {"name": "Sales Report", "url": "/reports/sales/", "icon": "fas fa-chart-line", "permissions": ["pos.view_transaction"]},
        ]
    },
    "order_with_respect_to": [
        "pos.Transaction", "pos.Product", "pos.Category", "pos.Member",
        "pos.Voucher", "pos.Promotion", "pos.OperationalExpense",
        "pos.CashierShift", "pos.Shop", "pos.CustomUser", "pos.TokenProxy",
    ],
    "hide_apps": ["auth", "authtoken"],
    "hide_models": ["auth.User", "auth.Group"],
    "show_ui_builder": False,
    "topmenu_links": [
        {"name": "Dashboard", "url": "/admin", "permissions": ["auth.view_user"]},
        {"name": "Cashier", "url": "/cashier/"},
    ],
}
