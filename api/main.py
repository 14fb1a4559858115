from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.lifespan import app_lifespan
from api.v1.bonus.router import BONUS_ROUTER
from api.v1.promocodes.router import PROMOCODES_ROUTER
from api.v1.system.router import SYSTEM_ROUTER
from services.bonus_ledger import BonusLedger
from services.promo_evaluator import Clock, utc_now
from services.promo_registry import PromoRegistry
from utils.config_validator import PromoServiceConfig


async def http_exception_handler(_: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def create_app(
    config: Optional[PromoServiceConfig] = None,
    promo_registry: Optional[PromoRegistry] = None,
    bonus_ledger: Optional[BonusLedger] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the API. Anything not passed in is created from the environment;
    the promo registry is built in the lifespan when not injected.
    """
    app = FastAPI(lifespan=app_lifespan)

    app.state.config = config or PromoServiceConfig.from_env()
    app.state.promo_registry = promo_registry
    app.state.bonus_ledger = bonus_ledger or BonusLedger.with_demo_balance()
    app.state.clock = clock or utc_now

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    # Routers
    app.include_router(PROMOCODES_ROUTER)
    app.include_router(BONUS_ROUTER)
    app.include_router(SYSTEM_ROUTER)

    # Middlewares
    origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
