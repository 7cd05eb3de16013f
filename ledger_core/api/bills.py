"""
Bill API endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from ledger_core.api.deps import get_actor, get_core
from ledger_core.core import LedgerCore
from ledger_core.errors import LedgerError
from ledger_core.models.base import utcnow
from ledger_core.models.enums import BillStatus
from ledger_core.schemas.bill import BillCreate, BillPayment, BillResponse
from ledger_core.schemas.identity import Actor

router = APIRouter(prefix="/bills", tags=["Bills"])


@router.post("", response_model=BillResponse, status_code=201)
def create_bill(
    request: BillCreate,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        bill = core.bills.create_bill(request, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return BillResponse.from_bill(bill, utcnow().date())


@router.get("", response_model=list[BillResponse])
def list_bills(
    owner_id: str | None = None,
    status: BillStatus | None = None,
    as_of: date | None = None,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """
    List bills by due date.

    Status is the effective status: a pending bill past its due
    date is reported (and filtered) as OVERDUE.
    """
    as_of = as_of or utcnow().date()
    try:
        bills = core.bills.list_bills(actor, owner_id, status, as_of)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return [BillResponse.from_bill(b, as_of) for b in bills]


@router.get("/{bill_id}", response_model=BillResponse)
def get_bill(
    bill_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        bill = core.bills.get_bill(bill_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return BillResponse.from_bill(bill, utcnow().date())


@router.post("/{bill_id}/pay", response_model=BillResponse)
def pay_bill(
    bill_id: int,
    request: BillPayment,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Pay a bill; 409 if it is already paid."""
    try:
        bill = core.bills.pay_bill(bill_id, actor, request.account_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return BillResponse.from_bill(bill, utcnow().date())


@router.post("/{bill_id}/cancel", response_model=BillResponse)
def cancel_bill(
    bill_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        bill = core.bills.cancel_bill(bill_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return BillResponse.from_bill(bill, utcnow().date())


@router.post("/autopay", response_model=list[BillResponse])
def run_autopay(
    as_of: date | None = None,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Pay every autopay bill that is due. System/admin only."""
    as_of = as_of or utcnow().date()
    try:
        paid = core.bills.pay_due_autopay_bills(actor, as_of)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return [BillResponse.from_bill(b, as_of) for b in paid]
