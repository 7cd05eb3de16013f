"""
Ledger Core: FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from ledger_core.config import get_settings
from ledger_core.core import LedgerCore, build_core
from ledger_core.logging_config import setup_logging
from ledger_core.api.health import router as health_router
from ledger_core.api.accounts import router as accounts_router
from ledger_core.api.transactions import router as transactions_router
from ledger_core.api.bills import router as bills_router
from ledger_core.api.audit import router as audit_router
from ledger_core.api.admin import router as admin_router


def create_app(core: LedgerCore | None = None) -> FastAPI:
    """
    Build the application around a ledger core.

    Tests pass their own core; the server builds one from settings.
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Persistent, concurrent ledger core",
    )
    app.state.core = core or build_core(settings=settings)

    # Register routers
    app.include_router(health_router)
    app.include_router(accounts_router)
    app.include_router(transactions_router)
    app.include_router(bills_router)
    app.include_router(audit_router)
    app.include_router(admin_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
