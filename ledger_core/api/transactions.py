"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException

from ledger_core.api.deps import get_actor, get_core
from ledger_core.core import LedgerCore
from ledger_core.errors import LedgerError
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.ledger import LedgerEntryResponse
from ledger_core.schemas.transaction import (
    HoldDecision,
    ReversalRequest,
    TransactionRequest,
)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=LedgerEntryResponse, status_code=201)
def submit_transaction(
    request: TransactionRequest,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """
    Submit a deposit, withdrawal, transfer, payment, or fee.

    Returns the primary entry. Large deposits come back PENDING
    until an admin releases the hold.
    """
    try:
        return core.transactions.submit(request, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{entry_id}", response_model=LedgerEntryResponse)
def get_transaction(
    entry_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Get transaction details."""
    try:
        return core.accounts.get_entry(entry_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/{entry_id}/reverse",
    response_model=LedgerEntryResponse,
    status_code=201,
)
def reverse_transaction(
    entry_id: int,
    request: ReversalRequest,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Reverse a completed transaction. Admin only."""
    try:
        return core.transactions.reverse(entry_id, actor, request.reason)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{entry_id}/release", response_model=LedgerEntryResponse)
def release_hold(
    entry_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.transactions.release_hold(entry_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{entry_id}/reject", response_model=LedgerEntryResponse)
def reject_hold(
    entry_id: int,
    request: HoldDecision,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.transactions.reject_hold(entry_id, actor, request.reason)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
