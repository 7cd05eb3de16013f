"""
Account API endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from ledger_core.api.deps import get_actor, get_core
from ledger_core.core import LedgerCore
from ledger_core.errors import LedgerError
from ledger_core.schemas.account import (
    AccountBalanceResponse,
    AccountOpen,
    AccountResponse,
    AccountStatusUpdate,
    ReconciliationResult,
)
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.ledger import LedgerEntryResponse
from ledger_core.schemas.statement import Statement

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=201)
def open_account(
    request: AccountOpen,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Open a new ACTIVE account with a zero balance."""
    try:
        return core.accounts.open_account(request, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    owner_id: str | None = None,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """List accounts for an owner (the caller by default)."""
    try:
        return core.accounts.list_accounts(actor, owner_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Get account details."""
    try:
        return core.accounts.get_account(account_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.accounts.get_balance(account_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{account_id}/status", response_model=AccountResponse)
def change_account_status(
    account_id: int,
    request: AccountStatusUpdate,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """
    Change account status.

    Enforces the state machine: only valid transitions
    are allowed. Admin only.
    """
    try:
        return core.accounts.change_status(account_id, request, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{account_id}/entries", response_model=list[LedgerEntryResponse])
def list_entries(
    account_id: int,
    since: datetime | None = None,
    until: datetime | None = None,
    after_id: int | None = None,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """
    Ledger entries for the account in chronological order.

    Pass the last id already received as after_id to continue a read.
    """
    try:
        return core.accounts.entries(account_id, actor, since, until, after_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{account_id}/statement", response_model=Statement)
def get_statement(
    account_id: int,
    start: datetime,
    end: datetime,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.statements.build(account_id, start, end, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{account_id}/statement/export")
def export_statement(
    account_id: int,
    start: datetime,
    end: datetime,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Statement rows keyed by the stable export field names."""
    try:
        statement = core.statements.build(account_id, start, end, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return statement.export_rows()


@router.post("/{account_id}/reconcile", response_model=ReconciliationResult)
def reconcile_account(
    account_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Rebuild the cached balance from the ledger. Admin only."""
    try:
        return core.accounts.reconcile(account_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/{account_id}/interest",
    response_model=LedgerEntryResponse,
    status_code=201,
)
def post_interest(
    account_id: int,
    days: int = Query(ge=1, le=366),
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Credit simple interest for the given number of days."""
    try:
        return core.transactions.post_interest(account_id, days, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
