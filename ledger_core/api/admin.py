"""
Soft delete and restore endpoints. Admin only.
"""

from fastapi import APIRouter, Depends, HTTPException

from ledger_core.api.deps import get_actor, get_core
from ledger_core.core import LedgerCore
from ledger_core.errors import LedgerError
from ledger_core.schemas.audit import SoftDeleteRequest, TombstoneResponse
from ledger_core.schemas.identity import Actor

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/soft-delete", response_model=TombstoneResponse, status_code=201)
def soft_delete(
    request: SoftDeleteRequest,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Remove a record and keep a restorable snapshot of it."""
    try:
        return core.soft_delete.soft_delete(
            request.table_name, request.record_id, actor, request.reason
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/tombstones", response_model=list[TombstoneResponse])
def list_tombstones(
    table_name: str | None = None,
    restorable_only: bool = False,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.soft_delete.list_tombstones(actor, table_name, restorable_only)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/tombstones/{tombstone_id}/restore", response_model=TombstoneResponse)
def restore(
    tombstone_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Write the snapshot back. A tombstone restores once; again is 409."""
    try:
        return core.soft_delete.restore(tombstone_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
