"""
Configuration validator for the promo service
Resolves promo settings from the environment and reports problems on startup
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Tuple

from services.promo_registry import DEFAULT_APPLY_LOCK_TIMEOUT_SECONDS, UnknownCodePolicy
from utils.db_utils import is_truthy
from utils.get_env import (
    get_allow_sqlite_fallback_env,
    get_database_url_env,
    get_promo_apply_lock_timeout_seconds_env,
    get_promo_apply_unknown_code_env,
    get_promo_default_user_id_env,
    get_promo_registry_backend_env,
    get_promo_seed_demo_data_env,
)

logger = logging.getLogger(__name__)

REGISTRY_BACKENDS = ("memory", "sql")
DEFAULT_USER_ID = "user_123"


@dataclass
class PromoServiceConfig:
    registry_backend: str = "memory"
    seed_demo_data: bool = True
    unknown_code_policy: str = UnknownCodePolicy.IGNORE.value
    apply_lock_timeout_seconds: float = DEFAULT_APPLY_LOCK_TIMEOUT_SECONDS
    default_user_id: str = DEFAULT_USER_ID

    @classmethod
    def from_env(cls) -> "PromoServiceConfig":
        raw_timeout = get_promo_apply_lock_timeout_seconds_env()
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_APPLY_LOCK_TIMEOUT_SECONDS
        except ValueError:
            timeout = -1.0
        return cls(
            registry_backend=(get_promo_registry_backend_env() or "memory").strip().lower(),
            seed_demo_data=is_truthy(get_promo_seed_demo_data_env() or "true"),
            unknown_code_policy=(get_promo_apply_unknown_code_env() or "ignore").strip().lower(),
            apply_lock_timeout_seconds=timeout,
            default_user_id=(get_promo_default_user_id_env() or DEFAULT_USER_ID).strip() or DEFAULT_USER_ID,
        )

    def validate(self) -> Tuple[bool, List[str], List[str]]:
        """
        Returns:
            (is_valid, errors, warnings)
        """
        errors = []
        warnings = []

        if self.registry_backend not in REGISTRY_BACKENDS:
            errors.append(
                f"❌ PROMO_REGISTRY_BACKEND={self.registry_backend!r} is not supported. "
                f"Use one of: {', '.join(REGISTRY_BACKENDS)}"
            )
        elif self.registry_backend == "sql" and not get_database_url_env():
            if is_truthy(get_allow_sqlite_fallback_env()):
                warnings.append("⚡ DATABASE_URL not set, using the sqlite fallback file")
            else:
                errors.append("❌ PROMO_REGISTRY_BACKEND=sql needs DATABASE_URL (or ALLOW_SQLITE_FALLBACK=true)")
        elif self.registry_backend == "memory":
            warnings.append("⚡ Promo state is kept in process memory and resets on restart")

        if self.unknown_code_policy not in {policy.value for policy in UnknownCodePolicy}:
            errors.append(
                f"❌ PROMO_APPLY_UNKNOWN_CODE={self.unknown_code_policy!r} is not supported. "
                "Use 'ignore' or 'raise'"
            )

        if self.apply_lock_timeout_seconds <= 0:
            errors.append("❌ PROMO_APPLY_LOCK_TIMEOUT_SECONDS must be a positive number")

        return len(errors) == 0, errors, warnings

    def with_invalid_fields_reset(self) -> "PromoServiceConfig":
        """Copy with every setting that fails validation put back to its default"""
        defaults = PromoServiceConfig()
        changes = {}

        if self.registry_backend not in REGISTRY_BACKENDS or (
            self.registry_backend == "sql"
            and not (get_database_url_env() or is_truthy(get_allow_sqlite_fallback_env()))
        ):
            changes["registry_backend"] = defaults.registry_backend
        if self.unknown_code_policy not in {policy.value for policy in UnknownCodePolicy}:
            changes["unknown_code_policy"] = defaults.unknown_code_policy
        if self.apply_lock_timeout_seconds <= 0:
            changes["apply_lock_timeout_seconds"] = defaults.apply_lock_timeout_seconds

        for field_name, value in changes.items():
            logger.warning(f"Falling back to {field_name}={value!r}")
        return replace(self, **changes)

    def print_config_report(self) -> bool:
        """Print configuration report on startup"""
        print("\n" + "=" * 70)
        print("💸 Promo Service Configuration Report")
        print("=" * 70 + "\n")
        print(f"📌 Registry backend: {self.registry_backend}")
        print(f"   Seed demo data: {'yes' if self.seed_demo_data else 'no'}")
        print(f"   Unknown code on apply: {self.unknown_code_policy}")
        print(f"   Apply lock timeout: {self.apply_lock_timeout_seconds}s")
        print(f"   Default user id: {self.default_user_id}")

        is_valid, errors, warnings = self.validate()
        print("\n" + "-" * 70 + "\n")
        if errors:
            print("❌ SETUP ERRORS:\n")
            for error in errors:
                print(f"   {error}\n")
        if warnings:
            print("⚡ SETUP WARNINGS:\n")
            for warning in warnings:
                print(f"   {warning}\n")
        if is_valid:
            print("✅ Promo configuration is valid\n")

        print("=" * 70 + "\n")

        return is_valid


def setup_config_logging(config: PromoServiceConfig) -> bool:
    logger.info("💸 Promo service starting up...")

    is_valid = config.print_config_report()
    if not is_valid:
        logger.warning("⚠️  Promo configuration has errors. Please fix them in .env")

    return is_valid
