from dotenv import load_dotenv
from pathlib import Path
import os
ROOT_DIR = Path(__file__).resolve().parents[1]
# Load both potential env locations:
# 1) parent of the service checkout (shared deployment .env)
# 2) service root (local override)
load_dotenv(ROOT_DIR.parent / ".env")
load_dotenv(ROOT_DIR / ".env", override=True)


def get_database_url_env():
    return os.getenv("DATABASE_URL")


def get_allow_sqlite_fallback_env():
    return os.getenv("ALLOW_SQLITE_FALLBACK")


def get_app_data_directory_env():
    return os.getenv("APP_DATA_DIRECTORY")


def get_strict_startup_checks_env():
    return os.getenv("STRICT_STARTUP_CHECKS")


def get_promo_registry_backend_env():
    return os.getenv("PROMO_REGISTRY_BACKEND")


def get_promo_seed_demo_data_env():
    return os.getenv("PROMO_SEED_DEMO_DATA")


def get_promo_apply_unknown_code_env():
    return os.getenv("PROMO_APPLY_UNKNOWN_CODE")


def get_promo_apply_lock_timeout_seconds_env():
    return os.getenv("PROMO_APPLY_LOCK_TIMEOUT_SECONDS")


def get_promo_default_user_id_env():
    return os.getenv("PROMO_DEFAULT_USER_ID")
