from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI

from services.promo_registry import InMemoryPromoRegistry, PromoRegistry, UnknownCodePolicy
from services.promo_seed import seed_demo_promo_codes
from services.sql_promo_registry import SqlPromoRegistry, create_registry_engine
from utils.config_validator import PromoServiceConfig, setup_config_logging
from utils.db_utils import is_truthy
from utils.get_env import get_strict_startup_checks_env

logger = logging.getLogger(__name__)


def build_promo_registry(config: PromoServiceConfig) -> PromoRegistry:
    policy = UnknownCodePolicy(config.unknown_code_policy)
    if config.registry_backend == "sql":
        registry = SqlPromoRegistry(create_registry_engine(), unknown_code_policy=policy)
        registry.create_tables()
    else:
        registry = InMemoryPromoRegistry(
            unknown_code_policy=policy,
            lock_timeout_seconds=config.apply_lock_timeout_seconds,
        )

    if config.seed_demo_data:
        seed_demo_promo_codes(registry)
    logger.info(f"Promo registry ready ({config.registry_backend} backend)")
    return registry


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.
    Validates configuration and builds the process-wide promo registry,
    unless one was injected through create_app().
    """
    config: PromoServiceConfig = app.state.config
    strict_startup_checks = is_truthy(get_strict_startup_checks_env())

    is_valid = setup_config_logging(config)
    if not is_valid and strict_startup_checks:
        raise RuntimeError("Invalid promo configuration, see the startup report")

    if not is_valid:
        config = config.with_invalid_fields_reset()
        app.state.config = config

    if app.state.promo_registry is None:
        app.state.promo_registry = await asyncio.to_thread(build_promo_registry, config)
    yield
