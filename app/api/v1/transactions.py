"""
Transaction API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.transactions import (
    CreateTransactionUseCase, DeleteTransactionUseCase, TransactionQueryService,
)
from app.infrastructure.db.models import TransactionModel


router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


# === Request/Response models ===

class CreateTransactionRequest(BaseModel):
    amount: int = Field(ge=0)
    date_local: str | None = None  # YYYY-MM-DD, по умолчанию сегодня
    description: str | None = None


class TransactionResponse(BaseModel):
    id: int
    ts_utc: datetime
    date_local: str
    kind: str
    amount: int
    source: str
    fixed_cost_id: int | None = None
    description: str | None = None

    @classmethod
    def from_model(cls, tx: TransactionModel) -> "TransactionResponse":
        return cls(
            id=tx.id,
            ts_utc=tx.ts_utc,
            date_local=tx.date_local,
            kind=tx.kind,
            amount=tx.amount,
            source=tx.source,
            fixed_cost_id=tx.fixed_cost_id,
            description=tx.description,
        )


# === Endpoints ===

@router.post("/income", response_model=TransactionResponse)
def add_income(req: CreateTransactionRequest, db: Session = Depends(get_db)):
    """Записать доход (IN)"""
    tx = CreateTransactionUseCase(db).execute_income(
        amount=req.amount, date_local=req.date_local, description=req.description
    )
    return TransactionResponse.from_model(tx)


@router.post("/expense", response_model=TransactionResponse)
def add_expense(req: CreateTransactionRequest, db: Session = Depends(get_db)):
    """Записать расход (OUT)"""
    tx = CreateTransactionUseCase(db).execute_expense(
        amount=req.amount, date_local=req.date_local, description=req.description
    )
    return TransactionResponse.from_model(tx)


@router.get("/recent", response_model=list[TransactionResponse])
def list_recent_transactions(limit: int = Query(20, ge=1), db: Session = Depends(get_db)):
    rows = TransactionQueryService(db).list_recent(limit=limit)
    return [TransactionResponse.from_model(tx) for tx in rows]


@router.get("", response_model=list[TransactionResponse])
def list_transactions(
    start_date: str | None = None,
    end_date: str | None = None,
    kind: str | None = None,
    limit: int = Query(30, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Страница с фильтрами (экран истории)"""
    rows = TransactionQueryService(db).list_between(
        start_date=start_date, end_date=end_date, kind=kind, limit=limit, offset=offset
    )
    return [TransactionResponse.from_model(tx) for tx in rows]


@router.delete("/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    DeleteTransactionUseCase(db).execute(transaction_id)
    return {"deleted": transaction_id}
