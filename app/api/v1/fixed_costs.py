"""
Fixed cost API endpoints (catalogue + monthly paid/unpaid toggle)
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.fixed_costs import FixedCostCatalog, FixedCostReconciler


router = APIRouter(prefix="/api/v1/fixed-costs", tags=["fixed-costs"])


class CreateFixedCostRequest(BaseModel):
    name: str
    amount: int = Field(ge=0)


class SetActiveRequest(BaseModel):
    is_active: bool


class PaymentDateRequest(BaseModel):
    date_local: str | None = None  # YYYY-MM-DD, по умолчанию сегодня


class FixedCostResponse(BaseModel):
    id: int
    name: str
    amount: int
    is_active: bool
    period_ym: str | None = None
    is_paid: bool = False
    paid_date_local: str | None = None
    paid_ts_utc: datetime | None = None
    paid_tx_id: int | None = None


class PaymentResponse(BaseModel):
    fixed_cost_id: int
    period_ym: str
    paid_date_local: str | None = None
    paid_ts_utc: datetime | None = None
    tx_id: int | None = None


@router.get("", response_model=list[FixedCostResponse])
def list_fixed_costs(db: Session = Depends(get_db)):
    return [FixedCostResponse(**row) for row in FixedCostCatalog(db).list_fixed_costs()]


@router.post("", response_model=FixedCostResponse)
def add_fixed_cost(req: CreateFixedCostRequest, db: Session = Depends(get_db)):
    fc = FixedCostCatalog(db).add_fixed_cost(name=req.name, amount=req.amount)
    return FixedCostResponse(id=fc.id, name=fc.name, amount=fc.amount, is_active=fc.is_active)


@router.patch("/{fixed_cost_id}/active", response_model=FixedCostResponse)
def set_fixed_cost_active(fixed_cost_id: int, req: SetActiveRequest, db: Session = Depends(get_db)):
    fc = FixedCostCatalog(db).set_active(fixed_cost_id, req.is_active)
    return FixedCostResponse(id=fc.id, name=fc.name, amount=fc.amount, is_active=fc.is_active)


@router.delete("/{fixed_cost_id}")
def delete_fixed_cost(fixed_cost_id: int, db: Session = Depends(get_db)):
    FixedCostReconciler(db).delete_fixed_cost(fixed_cost_id)
    return {"deleted": fixed_cost_id}


@router.post("/{fixed_cost_id}/paid", response_model=PaymentResponse)
def mark_fixed_cost_paid(
    fixed_cost_id: int, req: PaymentDateRequest | None = None, db: Session = Depends(get_db)
):
    payment = FixedCostReconciler(db).mark_paid(fixed_cost_id, req.date_local if req else None)
    return PaymentResponse(
        fixed_cost_id=payment.fixed_cost_id,
        period_ym=payment.period_ym,
        paid_date_local=payment.paid_date_local,
        paid_ts_utc=payment.paid_ts_utc,
        tx_id=payment.tx_id,
    )


@router.post("/{fixed_cost_id}/unpaid")
def mark_fixed_cost_unpaid(
    fixed_cost_id: int, req: PaymentDateRequest | None = None, db: Session = Depends(get_db)
):
    period = FixedCostReconciler(db).mark_unpaid(fixed_cost_id, req.date_local if req else None)
    return {"fixed_cost_id": fixed_cost_id, "period_ym": period}
