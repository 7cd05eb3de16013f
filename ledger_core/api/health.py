"""
Health check endpoint.

Used by load balancers, monitoring systems, and humans
to verify the application is running and responsive.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ledger_core.api.deps import get_core
from ledger_core.core import LedgerCore

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(core: LedgerCore = Depends(get_core)):
    """
    Return application health status including database connectivity.

    The database check executes a simple query to verify
    the connection is alive. If it fails, the endpoint
    reports the instance as degraded.
    """
    try:
        with core.session_factory() as db:
            db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "ledger-core",
        "database": db_status,
    }
