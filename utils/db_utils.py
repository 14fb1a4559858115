import os
from utils.get_env import (
    get_allow_sqlite_fallback_env,
    get_app_data_directory_env,
    get_database_url_env,
)
from urllib.parse import urlsplit

DEFAULT_APP_DATA_DIRECTORY = "/tmp/remit-promo"


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def get_database_url_and_connect_args() -> tuple[str, dict]:
    database_url = get_database_url_env()
    if not database_url:
        if is_truthy(get_allow_sqlite_fallback_env()):
            app_data_dir = get_app_data_directory_env() or DEFAULT_APP_DATA_DIRECTORY
            os.makedirs(app_data_dir, exist_ok=True)
            database_url = "sqlite:///" + os.path.join(app_data_dir, "promocodes.db")
        else:
            raise RuntimeError(
                "No database URL configured. Set DATABASE_URL or ALLOW_SQLITE_FALLBACK=true "
                "when PROMO_REGISTRY_BACKEND=sql."
            )

    # The registry runs on a synchronous engine; async driver URLs are rewritten
    # back to their default sync drivers.
    if database_url.startswith("sqlite+aiosqlite://"):
        database_url = database_url.replace("sqlite+aiosqlite://", "sqlite://", 1)
    elif database_url.startswith("postgresql+asyncpg://"):
        database_url = database_url.replace("postgresql+asyncpg://", "postgresql://", 1)

    try:
        split_result = urlsplit(database_url)
    except ValueError as exc:
        raise RuntimeError(
            "Database URL is malformed. If your password has special characters "
            "(@, :, /, ?, #, [, ]), URL-encode it before putting it in DATABASE_URL."
        ) from exc

    if not split_result.scheme.startswith("sqlite"):
        hostname = split_result.hostname
        if not hostname:
            raise RuntimeError("Database URL is invalid: hostname is missing.")
        if "<" in hostname or ">" in hostname:
            raise RuntimeError(
                "Database URL contains placeholder hostname. Replace it with the real host."
            )

    connect_args = {}
    if "sqlite" in database_url:
        connect_args["check_same_thread"] = False

    return database_url, connect_args
