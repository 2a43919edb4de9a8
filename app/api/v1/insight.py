"""
Summary and coaching API endpoints (read side)
"""
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.coaching_memory import CoachingMemoryJournal
from app.application.insight import CoachingInsightService
from app.application.pools import PoolsService


router = APIRouter(prefix="/api/v1", tags=["insight"])


class MemoryEntryResponse(BaseModel):
    id: int
    ts_utc: datetime
    date_local: str
    tone: str
    headline: str
    tags: list[str]
    context: dict[str, Any] | None = None


@router.get("/summary/today")
def get_today_summary(db: Session = Depends(get_db)):
    return PoolsService(db).get_today_summary()


@router.get("/summary/pools")
def get_pools_summary(db: Session = Depends(get_db)):
    """Пересчитывается на каждый запрос, без кэша"""
    return PoolsService(db).get_pools_summary().to_dict()


@router.get("/insight")
def get_coaching_insight(db: Session = Depends(get_db)):
    return CoachingInsightService(db).get_coaching_insight().to_dict()


@router.get("/insight/memory", response_model=list[MemoryEntryResponse])
def list_coaching_memory(limit: int = Query(20, ge=1, le=200), db: Session = Depends(get_db)):
    return [
        MemoryEntryResponse(
            id=entry.id,
            ts_utc=entry.ts_utc,
            date_local=entry.date_local,
            tone=entry.tone,
            headline=entry.headline,
            tags=[tag for tag in entry.tags.split(",") if tag],
            context=entry.context_json,
        )
        for entry in CoachingMemoryJournal(db).list_recent(limit)
    ]
