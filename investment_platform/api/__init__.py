"""
Investment Platform API Application Factory
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import PlatformSystem, get_platform, set_platform
from .users import router as users_router
from .assets import router as assets_router, orders_router as asset_orders_router
from .loans import router as loan_types_router, orders_router as loan_orders_router
from .transactions import router as transactions_router
from .funding import deposits_router, withdrawals_router
from .rewards import bonuses_router, activities_router, settings_router
from ..errors import PlatformError
from ..logging_config import get_logger, log_action
from .. import __version__


logger = get_logger("platform.api")


def create_app(system: Optional[PlatformSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    if system is not None:
        set_platform(system)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        admin = get_platform().seed_default_admin()
        if admin:
            logger.info(f"Default admin ready: {admin.email}")
        yield

    app = FastAPI(
        title="Investment Platform API",
        description="Accounts, assets, loans and funding requests backed by an account ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    config = (system or get_platform()).config

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.log_requests:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            log_action(
                logger, "info", f"{request.method} {request.url.path}",
                action="http_request",
                extra={
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2)
                }
            )
            return response

    @app.exception_handler(PlatformError)
    async def platform_error_handler(request: Request, exc: PlatformError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Include routers
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(assets_router, prefix="/api/assets", tags=["Assets"])
    app.include_router(asset_orders_router, prefix="/api/assetOrders", tags=["Asset Orders"])
    app.include_router(loan_types_router, prefix="/api/loanTypes", tags=["Loan Types"])
    app.include_router(loan_orders_router, prefix="/api/loanOrders", tags=["Loan Orders"])
    app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])
    app.include_router(deposits_router, prefix="/api/depositRequests", tags=["Deposit Requests"])
    app.include_router(withdrawals_router, prefix="/api/withdrawalRequests", tags=["Withdrawal Requests"])
    app.include_router(bonuses_router, prefix="/api/bonuses", tags=["Bonuses"])
    app.include_router(activities_router, prefix="/api/activities", tags=["Activities"])
    app.include_router(settings_router, prefix="/api/adminSettings", tags=["Admin Settings"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn using configured defaults"""
    import uvicorn

    config = get_platform().config
    uvicorn.run(create_app(), host=host or config.api_host, port=port or config.api_port)
