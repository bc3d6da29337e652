from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from walletfund import exceptions
from walletfund.config import settings
from walletfund.core.auditlogging.service.logservice import APILoggingMiddleware
from walletfund.core.dashboard.controller.dashboardcontroller import dashboard_routes
from walletfund.core.dashboard.service.dashboard_cache import DashboardCache
from walletfund.core.deposits.controller.depositcontroller import deposit_routes
from walletfund.core.deposits.service.deposit_service import DepositService
from walletfund.routes import base_routes
from walletfund.utilities.apiclient import BillsApiClient
from walletfund.utilities.timers import SchedulerTimers, Timers


def create_app(
    api_client: Optional[BillsApiClient] = None,
    timers: Optional[Timers] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown"""
        # Startup
        logger.info("[APP_STARTUP] Application starting...")
        client = api_client or BillsApiClient()
        scheduler = timers or SchedulerTimers()
        if isinstance(scheduler, SchedulerTimers):
            scheduler.start()

        app.state.api_client = client
        app.state.timers = scheduler
        app.state.dashboard_cache = DashboardCache()
        app.state.deposit_service = DepositService(client, scheduler, app.state.dashboard_cache)
        yield
        # Shutdown
        logger.info("[APP_SHUTDOWN] Application shutting down...")
        try:
            app.state.deposit_service.shutdown()
            app.state.dashboard_cache.reset()
            if isinstance(scheduler, SchedulerTimers):
                scheduler.shutdown()
            if api_client is None:
                await client.aclose()
        except Exception as e:
            logger.error(f"[APP_SHUTDOWN_ERROR] Error during shutdown: {str(e)}")

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version="1.0",
        description="""**Walletfund API** Wallet funding back end for the bills mobile app.

    Default Endpoints:
    - Deposit charge quote
    - Deposit initialization, navigation reporting, cancel and status
    - Cached dashboard
    """,
        license_info={
            "name": "MIT",
        },
        lifespan=lifespan
    )

    # -----------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(APILoggingMiddleware)

    # Exception Handlers

    app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)

    # Routes Registration

    app.include_router(base_routes, prefix="/api/v1", tags=["Base Routes"])
    app.include_router(deposit_routes, prefix="/api/v1/deposit", tags=["Deposit Routes"])
    app.include_router(dashboard_routes, prefix="/api/v1/dashboard", tags=["Dashboard Routes"])
    return app


app = create_app()
